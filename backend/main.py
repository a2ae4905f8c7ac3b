import os
from settlement import create_app
from settlement.jobs.scheduler import start_scheduler

app = create_app()

if app.config.get("SCHEDULER_ENABLED"):
    start_scheduler(app)

if __name__ == "__main__":
    host = os.getenv("FLASK_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_PORT", "5000"))
    debug = os.getenv("SETTLEMENT_ENV", "dev") == "dev"

    app.run(host=host, port=port, debug=debug, use_reloader=False)
