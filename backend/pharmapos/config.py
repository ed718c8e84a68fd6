# backend/pharmapos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pharmapos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pharmapos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Billing rules
    EXPIRY_MIN_DAYS = int(os.environ.get("EXPIRY_MIN_DAYS", "10"))
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))
    SEARCH_RESULT_LIMIT = int(os.environ.get("SEARCH_RESULT_LIMIT", "20"))

    # Payment reconciliation
    SALE_REFETCH_DELAY_SECONDS = float(os.environ.get("SALE_REFETCH_DELAY_SECONDS", "0.5"))
    PAYMENT_EPSILON = os.environ.get("PAYMENT_EPSILON", "0.01")

    # Invoice header
    CURRENCY_LABEL = os.environ.get("CURRENCY_LABEL", "Rs")
    INVOICE_PHARMACY_NAME = os.environ.get("INVOICE_PHARMACY_NAME", "Your Pharmacy Name")
    INVOICE_PHARMACY_OWNER = os.environ.get("INVOICE_PHARMACY_OWNER", "Pharmacy Owner")
    INVOICE_PHARMACY_ADDRESS = os.environ.get("INVOICE_PHARMACY_ADDRESS", "Pharmacy Address, City, Country")
    INVOICE_PHARMACY_PHONE = os.environ.get("INVOICE_PHARMACY_PHONE", "98XXXXXXXX")
    INVOICE_PHARMACY_EMAIL = os.environ.get("INVOICE_PHARMACY_EMAIL", "your@email.com")
    INVOICE_PHARMACY_REG = os.environ.get("INVOICE_PHARMACY_REG", "PMS-REG-12345")
    INVOICE_PHARMACY_HOURS = os.environ.get("INVOICE_PHARMACY_HOURS", "9 AM - 10 PM")
