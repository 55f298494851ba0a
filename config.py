import logging
import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

DB_PATH = os.getenv(
    'RECALL_DB_PATH',
    os.path.join(os.path.dirname(os.path.abspath(__file__)), 'recall.db'),
)

_tz_name = os.getenv('RECALL_TIMEZONE')
# None means system local time, resolved per timestamp so DST changes apply
LOCAL_TZ = ZoneInfo(_tz_name) if _tz_name else None

DEFAULT_SNOOZE_MINUTES = int(os.getenv('RECALL_SNOOZE_MINUTES', '10'))

logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=os.getenv('RECALL_LOG_LEVEL', 'INFO').upper()
)
