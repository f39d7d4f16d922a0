"""
Environment Variable Validation
Checks the variables the order tracking service needs before deployment
"""
import os
import sys
from dotenv import load_dotenv

load_dotenv()

ENV = os.environ.get('ENV', 'production')

REQUIRED_VARS = ['SECRET_KEY', 'DATABASE_URL']

INTEGER_VARS = [
    'DB_POOL_SIZE',
    'DB_MAX_OVERFLOW',
    'DB_POOL_TIMEOUT',
    'DB_CONNECT_TIMEOUT',
    'JWT_EXPIRY_DAYS',
    'TRACKING_POLL_SECONDS',
    'ORDER_LIST_POLL_SECONDS',
    'TIMELINE_DEDUPE_SECONDS',
    'API_TIMEOUT',
]


def validate_environment(environ=None):
    """
    Validate required environment variables

    Returns:
        Tuple of (is_valid, missing_vars, warnings)
    """
    environ = os.environ if environ is None else environ
    missing_vars = [var for var in REQUIRED_VARS if not environ.get(var)]
    warnings = []

    for var in INTEGER_VARS:
        value = environ.get(var)
        if value is None:
            continue
        try:
            if int(value) <= 0:
                warnings.append(f"{var} should be a positive integer")
        except ValueError:
            missing_vars.append(var)

    database_url = environ.get('DATABASE_URL', '')
    if database_url.startswith('sqlite') and environ.get('ENV', ENV) == 'production':
        warnings.append("DATABASE_URL points to sqlite in production")

    if not environ.get('ALLOWED_ORIGINS'):
        warnings.append("ALLOWED_ORIGINS not set - CORS may not work correctly")

    return len(missing_vars) == 0, missing_vars, warnings


def print_validation_results():
    """Print validation results to console"""
    is_valid, missing_vars, warnings = validate_environment()

    print(f"\n{'='*60}")
    print(f"Environment Variable Validation - {ENV.upper()}")
    print(f"{'='*60}\n")

    if is_valid:
        print("All required environment variables are set\n")
    else:
        print("Missing or invalid environment variables:\n")
        for var in missing_vars:
            print(f"  - {var}")
        print("\nPlease set these variables in your .env file or environment\n")

    if warnings:
        print("Warnings:\n")
        for warning in warnings:
            print(f"  - {warning}")
        print()

    print(f"{'='*60}\n")

    return is_valid


if __name__ == '__main__':
    if not print_validation_results():
        sys.exit(1)
