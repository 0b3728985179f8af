import logging
from contextvars import ContextVar
from .config import settings

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")

def setup_logging():
    level = logging.DEBUG if settings.ENV == "local" else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s",
    )
    install_request_id_factory()

def install_request_id_factory():
    # attach request_id to every log record, including third-party ones
    old_factory = logging.getLogRecordFactory()
    if getattr(old_factory, "_medsched", False):
        return
    def record_factory(*args, **kwargs):
        record = old_factory(*args, **kwargs)
        record.request_id = request_id_ctx.get()
        return record
    record_factory._medsched = True
    logging.setLogRecordFactory(record_factory)
