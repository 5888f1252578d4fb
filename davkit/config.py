import json
import logging
import os

"""
Configuration file parsing.  A config file is a JSON (or YAML, if
pyyaml is installed) mapping of section names to connection
parameters:

    {
        "default": {"webdav_url": "https://dav.example.com/", "webdav_user": "me"},
        "backup": {"inherits": "default", "webdav_url": "https://backup.example.com/"}
    }
"""


def config_section(config, section="default"):
    """
    Returns the settings of ``section``, with the settings of any
    section it ``inherits`` from filled in underneath.
    """
    seen = set()
    chain = []
    while section in config and section not in seen:
        seen.add(section)
        chain.append(config[section])
        section = config[section].get("inherits")
    ret = {}
    for settings in reversed(chain):
        ret.update(settings)
    ret.pop("inherits", None)
    return ret


def read_config(fn):
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config/"
        for config_file in (
            f"{cfgdir}/davkit/davkit.conf",
            f"{cfgdir}/davkit/davkit.yaml",
            f"{cfgdir}/davkit/davkit.json",
            "/etc/davkit/davkit.conf",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    try:
        try:
            with open(fn, "rb") as config_file:
                return json.load(config_file)
        except json.decoder.JSONDecodeError:
            ## Late import, wrapped in try/except.  yaml is external module,
            ## and not included in the requirements as for now.
            try:
                import yaml

                try:
                    with open(fn, "rb") as config_file:
                        return yaml.load(config_file, yaml.SafeLoader)
                except yaml.YAMLError:
                    logging.error(
                        f"config file {fn} exists but is neither valid json nor yaml.  Check the syntax."
                    )
            except ImportError:
                logging.error(
                    f"config file {fn} exists but is not valid json, and pyyaml is not installed."
                )

    except FileNotFoundError:
        logging.info("no config file found")
    except ValueError:
        logging.error("error in config file.  It will be ignored", exc_info=True)
    return {}
