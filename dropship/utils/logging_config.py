"""
Logging configuration for production. Imported for its side effects by
dropship.main and run_outbox.py when DEBUG is off.
"""
import logging
import sys
from pathlib import Path
from dropship.config import settings

logs_dir = Path("logs")
logs_dir.mkdir(exist_ok=True)

log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
date_format = "%Y-%m-%d %H:%M:%S"
formatter = logging.Formatter(log_format, date_format)


def _file_handler(name: str, level: int) -> logging.FileHandler:
    handler = logging.FileHandler(logs_dir / name)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO if not settings.DEBUG else logging.DEBUG)

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(formatter)

root_logger.addHandler(console_handler)
root_logger.addHandler(_file_handler("error.log", logging.ERROR))
root_logger.addHandler(_file_handler("app.log", logging.INFO))

# Wallet, postpaid and payout movements also go to their own audit trail
for name in ("dropship.services.wallet_service", "dropship.services.postpaid_service",
             "dropship.services.payout_service", "dropship.services.order_wallet_sync"):
    logging.getLogger(name).addHandler(_file_handler("ledger.log", logging.INFO))

logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)
