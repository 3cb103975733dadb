import sys
from typing import Optional

from loguru import logger

PALETTE = {
    "rollout": "blue",
    "ppo_trainer": "magenta",
    "session": "green",
    "opponent_pool": "cyan",
}

LEVEL_PER_COMPONENT = {
    "rollout": "INFO",
}


def component_filter(record):
    comp = record["extra"].get("component", "")
    min_level = logger.level(LEVEL_PER_COMPONENT.get(comp, "DEBUG")).no
    return record["level"].no >= min_level


def formatter(record):
    comp = record["extra"].get("component", "")
    id = record["extra"].get("id", "")
    colour = PALETTE.get(comp, "white")

    # Colour tags must be in the template itself for loguru to translate them
    if id:
        return (
            "{time:HH:mm:ss} | "
            f"<{colour}>{comp:<15} | {id:<15}</> | "
            "<level>{message}</level>\n{exception}"
        )
    else:
        return (
            "{time:HH:mm:ss} | "
            f"<{colour}>{comp:<15}</> | "
            "<level>{message}</level>\n{exception}"
        )


def configure_logging(quiet_rollouts: bool = True, log_file: Optional[str] = None) -> None:
    """Reinstall the sinks.

    Args:
        quiet_rollouts: Hide per-collector debug messages on stderr
        log_file: Also write uncoloured records to this file (rotated at 10 MB)
    """
    if quiet_rollouts:
        LEVEL_PER_COMPONENT["rollout"] = "INFO"
    else:
        LEVEL_PER_COMPONENT.pop("rollout", None)

    logger.remove()
    logger.add(sys.stderr, format=formatter, filter=component_filter, colorize=True)
    if log_file:
        logger.add(log_file, format=formatter, colorize=False, rotation="10 MB")


configure_logging()
