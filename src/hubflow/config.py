"""
This module provides the ConfigManager class for managing configuration settings
of the flow engine. The configuration settings are stored in a 'config.yaml' file.
"""

import os
import sys
import logging
import pytz
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

logger = logging.getLogger("__main__")
logger.info("[Config] loading module ")

LOG_LEVELS = ("debug", "info", "warning", "error")


class ConfigManager:
    """
    Manages the configuration settings for the flow engine.

    This class handles loading and saving configuration settings from a 'config.yaml'
    file. If the configuration file does not exist, it creates one with default values and
    asks the user to edit it before running again.
    """

    def __init__(self, given_dir):
        self.current_dir = given_dir
        self.config_file = os.path.join(self.current_dir, "config.yaml")
        self.yaml = YAML()
        self.yaml.default_flow_style = False
        self.yaml.indent(mapping=2, sequence=4, offset=2)
        self.yaml.preserve_quotes = True
        self.default_config = self.create_default_config()
        self.config = self.default_config.copy()
        self.load_config()

    def create_default_config(self):
        """
        Creates the default configuration with comments.
        """
        config = CommentedMap(
            {
                "homeassistant": CommentedMap(
                    {
                        "url": "http://homeassistant:8123",
                        "access_token": "",
                        "timeout": 10,
                    }
                ),
                "discovery": CommentedMap(
                    {
                        "timeout": 10,
                        "cache_ttl": 30,
                        "timeouts": CommentedMap(),
                    }
                ),
                "flows": CommentedMap(
                    {
                        "storage_dir": "flows",
                        "definitions_dir": "definitions",
                        "stale_after_hours": 24,
                    }
                ),
                "oauth": CommentedMap(
                    {
                        "redirect_uri": "",
                        "providers": CommentedMap(),
                    }
                ),
                "time_zone": "Europe/Berlin",
                "log_level": "info",
            }
        )
        config.yaml_set_start_comment("Config flow engine configuration")

        config["homeassistant"].yaml_add_eol_comment(
            "URL of Home Assistant, used to proxy config flows", "url"
        )
        config["homeassistant"].yaml_add_eol_comment(
            "Long-lived access token for Home Assistant", "access_token"
        )
        config["homeassistant"].yaml_add_eol_comment(
            "Request timeout in seconds - default: 10", "timeout"
        )
        config["discovery"].yaml_add_eol_comment(
            "Max seconds a flow waits for discovery - default: 10", "timeout"
        )
        config["discovery"].yaml_add_eol_comment(
            "Seconds discovery results are reused - default: 30", "cache_ttl"
        )
        config["discovery"].yaml_add_eol_comment(
            "Per protocol discovery timeouts, e.g. zigbee: 20", "timeouts"
        )
        config["flows"].yaml_add_eol_comment(
            "Directory for in-progress flows, relative to the config dir", "storage_dir"
        )
        config["flows"].yaml_add_eol_comment(
            "Directory with flow definition yaml files", "definitions_dir"
        )
        config["flows"].yaml_add_eol_comment(
            "Unfinished flows are purged after this many hours - default: 24",
            "stale_after_hours",
        )
        config["oauth"].yaml_add_eol_comment(
            "Redirect URI registered with the OAuth providers", "redirect_uri"
        )
        config["oauth"].yaml_add_eol_comment(
            "domain: {name, authorize_url, client_id, scopes}", "providers"
        )
        config.yaml_add_eol_comment(
            "Default time zone - default: Europe/Berlin", "time_zone"
        )
        config.yaml_add_eol_comment(
            "Log level for the application : debug, info, warning, error - default: info",
            "log_level",
        )
        return config

    def load_config(self):
        """
        Reads the configuration from 'config.yaml' file located in the config directory.
        If the file exists, it loads the configuration values on top of the defaults.
        If the file does not exist, it creates a new 'config.yaml' file with default values
        and asks the user to run again after configuring the settings.
        """
        if os.path.exists(self.config_file):
            with open(self.config_file, "r", encoding="utf-8") as f:
                loaded = self.yaml.load(f) or {}
            for key, value in loaded.items():
                if isinstance(value, dict) and isinstance(self.config.get(key), dict):
                    self.config[key].update(value)
                else:
                    self.config[key] = value
            self.check_config()
        else:
            self.write_config()
            print("Config file not found. Created a new one with default values.")
            print("Please run again after configuring the settings in config.yaml")
            sys.exit(0)

    def write_config(self):
        """
        Writes the configuration to 'config.yaml' file located in the config directory.
        """
        logger.info("[Config] writing config file")
        with open(self.config_file, "w", encoding="utf-8") as config_file_handle:
            self.yaml.dump(self.config, config_file_handle)

    def check_config(self):
        """
        Check timeouts, time zone and log level.
        """
        errors = []
        for section, key in (
            ("homeassistant", "timeout"),
            ("discovery", "timeout"),
            ("discovery", "cache_ttl"),
            ("flows", "stale_after_hours"),
        ):
            value = self.config[section].get(key)
            if not isinstance(value, (int, float)) or value <= 0:
                errors.append(f"{section}.{key} must be a positive number, got {value}")
        for protocol, value in (self.config["discovery"].get("timeouts") or {}).items():
            if not isinstance(value, (int, float)) or value <= 0:
                errors.append(f"discovery.timeouts.{protocol} must be positive")
        try:
            pytz.timezone(self.config["time_zone"])
        except pytz.UnknownTimeZoneError:
            errors.append(f"unknown time_zone {self.config['time_zone']}")
        if str(self.config["log_level"]).lower() not in LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(LOG_LEVELS)}")

        if errors:
            for error in errors:
                logger.error("[Config] %s. Please adjust the settings.", error)
            sys.exit(0)

    def resolve_path(self, path):
        """
        Resolve a directory from the config relative to the config directory.
        """
        if os.path.isabs(path):
            return path
        return os.path.join(self.current_dir, path)

    @property
    def storage_dir(self):
        return self.resolve_path(self.config["flows"]["storage_dir"])

    @property
    def definitions_dir(self):
        return self.resolve_path(self.config["flows"]["definitions_dir"])

    @property
    def oauth_domains(self):
        return list((self.config["oauth"].get("providers") or {}).keys())
