from flask import Flask, jsonify

from config import Config
from logging_config import configure_logging
from data_store import DataStore, init_service_tables
from service_routes import service_bp
from service_seed_data import seed_defaults

logger = configure_logging(Config.LOG_FORMAT)

app = Flask(__name__)
app.secret_key = Config.FLASK_SECRET_KEY

app.register_blueprint(service_bp)

# Initialize tables on startup
init_service_tables()
if Config.SEED_ON_STARTUP:
    seed_defaults(DataStore())


@app.route('/health')
def health():
    return jsonify({'status': 'ok'})


if __name__ == '__main__':
    logger.info(f"Starting service master on port {Config.PORT}")
    app.run(debug=Config.DEBUG, port=Config.PORT)
