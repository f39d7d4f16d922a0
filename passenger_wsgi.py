import os
import traceback
import importlib.util

# Passenger does not load .env on its own
from dotenv import load_dotenv

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(PROJECT_ROOT, ".env"))

APP_FILE = os.path.join(PROJECT_ROOT, "app.py")

captured_error = None

try:
    spec = importlib.util.spec_from_file_location("tracking_app", APP_FILE)
    app_module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(app_module)

    application = getattr(app_module, "application", None) or getattr(app_module, "app", None)
    if application is None:
        raise AttributeError("app.py loaded but no 'app' or 'application' variable found")

except Exception as e:
    captured_error = f"{e}\n\n{traceback.format_exc()}"

if captured_error:
    def application(environ, start_response):
        start_response("500 Internal Server Error", [("Content-Type", "text/plain")])
        # Details stay in the server log outside development
        body = "DEPLOYMENT FAILED\n\n"
        if os.environ.get("ENV") == "development":
            body += captured_error
        return [body.encode("utf-8")]
