"""
Stock Prediction Arena Backend

Users predict the next open/close price of US stocks and compete on
accuracy leaderboards. Built with FastAPI, SQLAlchemy and APScheduler.
"""

__version__ = "1.0.0"
__author__ = "Stock Prediction Team"
