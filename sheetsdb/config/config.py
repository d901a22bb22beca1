"""Configuration settings for the spreadsheet-backed row store."""

import os
from dotenv import load_dotenv

load_dotenv()

# --- Google API Configuration ---
# Sheets for the row data, Drive for discovery/creation/permissions
SCOPES = [
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive'
]

# Well-known name of every principal's backing spreadsheet
DOCUMENT_NAME = os.getenv('SHEETSDB_DOCUMENT_NAME', 'APP_DB')
SPREADSHEET_MIME_TYPE = 'application/vnd.google-apps.spreadsheet'

# --- Wire Format ---
# Leading apostrophe makes Sheets keep the cell as literal text
TEXT_PREFIX = "'"
# Full-column span read for every table (header at row 1, data from row 2)
FULL_ROW_RANGE = 'A:ZZ'
HEADER_ROW = 1
FIRST_DATA_ROW = 2

# --- Rate Limit Retry ---
# Defaults; SHEETSDB_RETRY_* overrides are parsed by the config loader
RETRY_MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 5.0

# --- Permissions ---
GRANT_ROLE = 'writer'
OWNER_ROLE = 'owner'

# --- Table Schemas --- #
# Column order is the on-the-wire row layout. Append-only: new columns go at the end.

DEFAULT_TABLE_SCHEMAS = {
    'profiles': [
        'id', 'first_name', 'last_name', 'role', 'email', 'height_cm', 'weight_kg',
        'sex', 'age', 'routine', 'locomotion_type', 'locomotion_distance_km',
        'locomotion_time_minutes', 'locomotion_days'
    ],
    'profile_history': [
        'id', 'user_id', 'height_cm', 'weight_kg', 'sex', 'age', 'routine',
        'locomotion_type', 'locomotion_distance_km', 'locomotion_time_minutes',
        'locomotion_days', 'created_at'
    ],
    'weight_history': ['id', 'user_id', 'weight_kg', 'created_at'],
    'bioimpedance_records': [
        'id', 'user_id', 'record_date', 'weight_kg', 'body_fat_percentage',
        'muscle_mass_kg', 'water_percentage', 'notes', 'created_at',
        'waist_cm', 'hip_cm', 'glutes_cm', 'thigh_cm', 'calf_cm',
        'biceps_cm', 'forearm_cm', 'chest_cm', 'shoulders_cm', 'bmi',
        'fat_mass_kg', 'lean_mass_kg', 'segmental_muscle_mass_arms_kg',
        'segmental_muscle_mass_legs_kg', 'segmental_muscle_mass_trunk_kg',
        'total_body_water_percentage', 'intracellular_water_percentage',
        'extracellular_water_percentage', 'basal_metabolic_rate_kcal',
        'visceral_fat_level', 'metabolic_age'
    ],
    'diet_plans': [
        'id', 'user_id', 'meal', 'description', 'scheduled_time', 'calories',
        'protein_g', 'carbs_g', 'fat_g'
    ],
    'diet_logs': ['id', 'user_id', 'diet_plan_id', 'logged_at'],
    'workouts': ['id', 'user_id', 'name', 'muscle_group', 'exercises', 'created_at'],
    'workout_logs': ['id', 'user_id', 'exercise_name', 'log_date', 'performance'],
    'daily_nutrition_logs': [
        'id', 'user_id', 'log_date', 'total_calories', 'total_protein_g',
        'total_carbs_g', 'total_fat_g', 'created_at'
    ],
    'personal_records': ['id', 'user_id', 'exercise_name', 'pr_weight', 'achieved_at'],
}
