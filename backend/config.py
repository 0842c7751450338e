"""
Configuration settings for the PLD report compositor.
"""

import os

# Base directory
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Database configuration (supports Docker override via environment variable)
DATABASE_PATH = os.getenv('DATABASE_PATH', os.path.join(BASE_DIR, 'pld_reports.db'))
DATABASE_URL = os.getenv('DATABASE_URL', f'sqlite:///{DATABASE_PATH}')

# Upload configuration (supports Docker override via environment variable)
UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'uploads'))

# Generated reports (served by the same /uploads route)
REPORTS_FOLDER = os.getenv('REPORTS_FOLDER', os.path.join(UPLOAD_FOLDER, 'reports'))
REPORTS_RELATIVE_DIR = 'uploads/reports'

# Public URL used to build attachment links inside the documents
PUBLIC_BASE_URL = os.getenv('PUBLIC_BASE_URL', 'http://localhost:3001')

# Ensure folders exist
os.makedirs(UPLOAD_FOLDER, exist_ok=True)
os.makedirs(REPORTS_FOLDER, exist_ok=True)
os.makedirs(os.path.dirname(DATABASE_PATH), exist_ok=True) if os.path.dirname(DATABASE_PATH) else None
