import logging
from datetime import date

from flask import Flask, jsonify, request
from flask_apscheduler import APScheduler
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.exceptions import HTTPException

from bawasa.auth.middleware import require_admin
from bawasa.auth.routes import auth_bp
from bawasa.config import API_CORS_ORIGINS, APP_NAME, DEBUG, RATE_LIMIT_ENABLED, SCHEDULER_ENABLED
from bawasa.database.db import init_db
from bawasa.database.seed_data import seed_all
from bawasa.routes.admin_routes import admin_bp
from bawasa.routes.billing_routes import billing_bp
from bawasa.routes.cashier_routes import cashier_bp
from bawasa.routes.consumer_routes import consumer_bp
from bawasa.routes.dashboard_routes import dashboard_bp
from bawasa.routes.issue_routes import issue_bp
from bawasa.routes.reading_routes import reading_bp
from bawasa.services.billing_service import billing_service
from bawasa.services.meter_reading_service import meter_reading_service
from bawasa.utils import error_response

app = Flask(__name__)

# ==============================
# GENERAL APP CONFIG
# ==============================

# Meter photos are referenced by URL, request bodies stay small
app.config["MAX_CONTENT_LENGTH"] = 2 * 1024 * 1024
app.config["DEBUG"] = DEBUG
app.config["RATELIMIT_ENABLED"] = RATE_LIMIT_ENABLED

# CORS Configuration
cors_origins = API_CORS_ORIGINS.split(",") if API_CORS_ORIGINS else ["*"]
CORS(app, resources={r"/api/*": {"origins": cors_origins}})

# Rate Limiting
limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    default_limits=["1000 per day", "200 per hour"],
    storage_uri="memory://"
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("bawasa-backend")

# Create tables on first start
init_db()

# Credential endpoints are throttled harder
limiter.limit("10 per minute")(auth_bp)

# Register Blueprints
app.register_blueprint(auth_bp)
app.register_blueprint(admin_bp)
app.register_blueprint(reading_bp)
app.register_blueprint(billing_bp)
app.register_blueprint(cashier_bp)
app.register_blueprint(issue_bp)
app.register_blueprint(consumer_bp)
app.register_blueprint(dashboard_bp)


# ==============================
# SCHEDULED JOBS
# ==============================

def run_monthly_cycle(today: date = None):
    """
    Bills last month's recorded readings, then opens this month's readings.
    Runs on the 1st of every month.
    """
    today = today or date.today()
    previous_year, previous_month = (today.year - 1, 12) if today.month == 1 else (today.year, today.month - 1)

    logger.info("Running monthly billing cycle...")
    billed = billing_service.generate_billings_for_month(previous_year, previous_month)
    opened = meter_reading_service.create_empty_readings_for_month(today.year, today.month)
    logger.info(f"Monthly cycle done: {billed.get('created', 0)} billings, {opened.get('created', 0)} readings")
    return {"billings": billed, "readings": opened}


def run_overdue_sweep():
    logger.info("Running overdue billing sweep...")
    return billing_service.mark_overdue_billings()


# Scheduler Config
class SchedulerConfig:
    SCHEDULER_API_ENABLED = False


app.config.from_object(SchedulerConfig())

scheduler = APScheduler()
if SCHEDULER_ENABLED:
    scheduler.init_app(app)
    scheduler.add_job(id="monthly_cycle", func=run_monthly_cycle, trigger="cron", day=1, hour=0, minute=5)
    scheduler.add_job(id="overdue_sweep", func=run_overdue_sweep, trigger="cron", hour=1, minute=0)
    scheduler.start()


# ==============================
# ERROR HANDLERS
# ==============================

@app.errorhandler(429)
def handle_rate_limit(e):
    return error_response("Too many requests. Please try again later.", 429)


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    """
    Global error handler: log the details, return a generic message.
    """
    if isinstance(e, HTTPException):
        # Pass Flask/werkzeug HTTP errors through unchanged
        return e

    logger.exception("Unexpected server error")
    if app.config.get("DEBUG"):
        return error_response(f"Internal server error: {str(e)}", 500)
    return error_response("An unexpected error occurred. Please try again.", 500)


@app.route("/api/health", methods=["GET"])
def health_check():
    """
    Basic health check for deploy probes.
    """
    return jsonify({"status": "ok", "service": APP_NAME}), 200


@app.route("/api/seed", methods=["POST"])
@require_admin
def seed():
    """
    Loads sample consumers, readings and billings
    Body (optional): { "dryRun": true }
    """
    try:
        data = request.get_json(silent=True) or {}
        result = seed_all(dry_run=bool(data.get("dryRun", data.get("dry_run", False))))
        return jsonify(result), 200
    except Exception as e:
        logger.exception("Seeding failed")
        return error_response("Seeding failed", 500, {"details": str(e) if DEBUG else None})


if __name__ == "__main__":
    from bawasa.config import API_HOST, API_PORT
    app.run(host=API_HOST, port=API_PORT, debug=DEBUG)
