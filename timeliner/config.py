"""
Configuration Manager for timeliner
Handles loading and saving run preferences from a JSON file.
"""

import json
import logging
import os

# Configure logger
logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ('mactime', 'csv', 'json')
ON_ERROR_POLICIES = ('raise', 'skip')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class TimelinerConfig:
    """
    Manages timeliner preferences.
    Preferences live in the 'timeliner' section of a JSON file so the file
    can be shared with other tools.
    """

    SECTION = 'timeliner'

    DEFAULT_CONFIG = {
        'filter': None,
        'strict': False,
        'on_error': 'raise',
        'output_format': 'mactime',
        'log_level': 'WARNING',
        'log_file': None,
        'memory_check_interval': 100000
    }

    def __init__(self, config_file=None):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to configuration file (optional)
        """
        self.config_file = config_file
        self.config = dict(self.DEFAULT_CONFIG)

        if config_file and os.path.exists(config_file):
            self.load()

    def load(self):
        """Load preferences from the configuration file."""
        if not self.config_file or not os.path.exists(self.config_file):
            return

        try:
            if os.path.getsize(self.config_file) == 0:
                return

            with open(self.config_file, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading configuration {self.config_file}: {e}")
            return

        section = data.get(self.SECTION) if isinstance(data, dict) else None
        if not isinstance(section, dict):
            logger.debug(f"No '{self.SECTION}' section in {self.config_file}")
            return

        unknown = set(section) - set(self.DEFAULT_CONFIG)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(sorted(unknown))}")

        self.update({k: v for k, v in section.items() if k in self.DEFAULT_CONFIG})

    def save(self):
        """Save preferences to the configuration file, keeping other sections."""
        if not self.config_file:
            return

        existing_data = {}
        if os.path.exists(self.config_file) and os.path.getsize(self.config_file) > 0:
            try:
                with open(self.config_file, 'r') as f:
                    existing_data = json.load(f)
            except json.JSONDecodeError:
                # File exists but is not valid JSON, start fresh
                existing_data = {}

        existing_data[self.SECTION] = self.config

        config_dir = os.path.dirname(self.config_file)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)

        with open(self.config_file, 'w') as f:
            json.dump(existing_data, f, indent=2)

    def update(self, values):
        """
        Override preferences, ignoring None values.

        Args:
            values: Mapping of preference name to value

        Raises:
            ValueError: If a value is invalid
        """
        for key, value in values.items():
            if key not in self.DEFAULT_CONFIG:
                raise ValueError(f"Unknown configuration key: {key}")
            if value is None:
                continue
            self.config[key] = value
        self.validate()

    def validate(self):
        """Raise ValueError on an invalid preference."""
        if self.config['output_format'] not in OUTPUT_FORMATS:
            raise ValueError(
                f"output_format must be one of {OUTPUT_FORMATS}, got {self.config['output_format']!r}"
            )
        if self.config['on_error'] not in ON_ERROR_POLICIES:
            raise ValueError(
                f"on_error must be one of {ON_ERROR_POLICIES}, got {self.config['on_error']!r}"
            )
        if not isinstance(self.config['strict'], bool):
            raise ValueError(f"strict must be true or false, got {self.config['strict']!r}")
        if str(self.config['log_level']).upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.config['log_level']!r}")
        interval = self.config['memory_check_interval']
        if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
            raise ValueError(f"memory_check_interval must be a positive integer, got {interval!r}")

    @property
    def filter_expression(self):
        return self.config['filter']

    @property
    def strict(self):
        return self.config['strict']

    @property
    def on_error(self):
        return self.config['on_error']

    @property
    def output_format(self):
        return self.config['output_format']

    @property
    def log_level(self):
        return logging.getLevelName(str(self.config['log_level']).upper())

    @property
    def log_file(self):
        return self.config['log_file']

    @property
    def memory_check_interval(self):
        return self.config['memory_check_interval']
