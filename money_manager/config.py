# money_manager/config.py
import copy
import os

import yaml

from money_manager.core.categorizer import DEFAULT_CATEGORY_KEYWORDS
from money_manager.parsers import DEFAULT_BANK_PARSERS, DEFAULT_SENDER_PATTERNS

DEFAULTS = {
    'db_path': 'money_manager.db',
    'user_id': 'local',
    'inbox_path': None,
    'output_dir': 'data',
    'manual_transactions_file': None,
    'bank_parsers': DEFAULT_BANK_PARSERS,
    'sender_patterns': DEFAULT_SENDER_PATTERNS,
    'categories': DEFAULT_CATEGORY_KEYWORDS,
    'output_modules': {
        'csv': 'money_manager.outputs.csv_output.CSVOutput',
        'excel': 'money_manager.outputs.excel_output.ExcelOutput',
    },
    'sms': {
        'limit': 100,
        'days_back': 30,
        'filter': 'transaction',
    },
}

# Environment variable -> config key
ENV_OVERRIDES = {
    'MONEY_MANAGER_DB': 'db_path',
    'MONEY_MANAGER_USER': 'user_id',
    'MONEY_MANAGER_INBOX': 'inbox_path',
}


def load_config(path=None):
    """
    Load a YAML config and merge it over the defaults.

    Mapping sections given in the file replace the default section wholesale,
    except ``sms`` whose keys are merged individually. Environment variables
    listed in ENV_OVERRIDES win over both.
    """
    cfg = copy.deepcopy(DEFAULTS)
    if path:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        for key, value in data.items():
            if key == 'sms' and isinstance(value, dict):
                cfg['sms'].update(value)
            else:
                cfg[key] = value

    for env_name, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            cfg[key] = value
    return cfg
