import secrets
import string

DOCUMENT_ID_ALPHABET = string.ascii_letters + string.digits
DOCUMENT_ID_LENGTH = 20
PIN_LENGTH = 4


def generate_document_id() -> str:
    """Generate a 20 character random id like 'Zq3kP0xW9aLm2VbT7cRy'"""
    return ''.join(secrets.choice(DOCUMENT_ID_ALPHABET) for _ in range(DOCUMENT_ID_LENGTH))


def generate_judge_pin() -> str:
    """Generate a 4 digit judge PIN like '0427'"""
    return ''.join(secrets.choice(string.digits) for _ in range(PIN_LENGTH))


def is_valid_pin(pin: str) -> bool:
    return isinstance(pin, str) and len(pin) == PIN_LENGTH and pin.isdigit()


def score_document_id(judge_id: str, school_id: str, category_id: str) -> str:
    return f"{judge_id}_{school_id}_{category_id}"


def feedback_document_id(judge_id: str, school_id: str) -> str:
    return f"{judge_id}_{school_id}"
