"""
Logging setup for the web app, the RQ worker, and the CLI.

LOG_LEVEL picks the root level (INFO when unset or unknown); LOG_FORMAT=json
switches to one JSON object per line. Pipeline code logs through plain module
loggers; run_logger() binds a run id so every line of a run can be grouped.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

# Record attributes copied into JSON output when a caller sets them
CONTEXT_FIELDS = ('run_id', 'kind', 'lead_id')

# Client libraries that log every request at INFO
QUIET_LOGGERS = ('urllib3', 'openai', 'httpcore', 'httpx', 'rq.worker')

TEXT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'


class JSONFormatter(logging.Formatter):

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _level_from_env() -> int:
    level = logging.getLevelName(os.getenv('LOG_LEVEL', 'INFO').upper())
    return level if isinstance(level, int) else logging.INFO


def _formatter_from_env() -> logging.Formatter:
    if os.getenv('LOG_FORMAT', 'text').lower() == 'json':
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')


def configure_logging(app=None):
    """Replace root handlers with a single stderr handler. Safe to call repeatedly."""
    level = _level_from_env()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(_formatter_from_env())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.setLevel(level)


def run_logger(logger, run_id, kind=None) -> logging.LoggerAdapter:
    """Adapter that stamps run_id (and kind) on every record it emits."""
    extra = {'run_id': run_id}
    if kind:
        extra['kind'] = kind
    return logging.LoggerAdapter(logger, extra)
