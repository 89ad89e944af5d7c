import time

from itsdangerous import BadSignature, URLSafeSerializer

from config import get_settings


def _serializer() -> URLSafeSerializer:
    settings = get_settings()
    return URLSafeSerializer(settings.csrf_secret, salt="budget-csrf")


def generate_csrf_token(scope: str = "data", max_age_hours: int = 2) -> str:
    serializer = _serializer()
    timestamp = int(time.time())
    expiry = timestamp + (max_age_hours * 3600)

    return serializer.dumps({"s": scope, "ts": timestamp, "exp": expiry})


def validate_csrf_token(token: str, scope: str = "data") -> bool:
    if not token:
        return False
    serializer = _serializer()
    try:
        data = serializer.loads(token)
    except BadSignature:
        return False

    if data.get("s") != scope:
        return False

    return int(time.time()) <= data.get("exp", 0)
