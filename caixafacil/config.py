# caixafacil/config.py
import copy
import os

import yaml

DEFAULT_CONFIG = {
    "db_path": "caixafacil.db",
    "output_dir": "data",
    "payment_method": "transferencia",
    "strict_dates": False,
    "categorization": {
        "batch_size": 30,
    },
    "bank_loaders": {
        "csv": "caixafacil.loaders.csv_statement.CSVStatementLoader",
        "pluggy": "caixafacil.loaders.pluggy.PluggyLoader",
        "iniciador": "caixafacil.loaders.iniciador.IniciadorLoader",
    },
    "output_modules": {
        "csv": "caixafacil.outputs.csv_output.CSVOutput",
        "excel": "caixafacil.outputs.excel_output.ExcelOutput",
    },
    "recurring_expenses": [],
    "business_context": {},
}


def _merge(base, override):
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(path=None):
    """Return the defaults overlaid with the YAML file at *path*, if it exists."""
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if path and os.path.exists(path):
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        _merge(cfg, data)
    batch_size = cfg["categorization"].get("batch_size")
    if not isinstance(batch_size, int) or batch_size < 1:
        raise ValueError("categorization.batch_size must be a positive integer")
    return cfg
