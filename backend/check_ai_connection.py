"""Direct AI vendor connectivity check.

Usage:
  python3 check_ai_connection.py
"""

import sys

from actions import diagnose_ai
from ai_client import provider_from_settings
from settings import BACKEND_DIR, load_settings


def main() -> int:
    settings = load_settings()
    print(f'Provider: {settings.ai_provider}')
    print(f'Model: {settings.ai_model or "(provider default)"}')
    if not settings.ai_api_key:
        print(f'Checked env files: {BACKEND_DIR / ".env"}')
        print('ERROR: AI_API_KEY is not set.')
        return 1

    result = diagnose_ai(lambda: provider_from_settings(settings))
    if not result.get('success'):
        print(f'ERROR: {result.get("error")}')
        return 2

    if not result['ok']:
        print(f'ERROR [{result["error_code"]}]: {result["detail"]}')
        print(f'Hint: {result["hint"]}')
        return 3

    print(result['message'])
    for question in result['questions']:
        print(f'Sample question: {question["title"]!r}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
