"""
Command-line entry point.

Embeds the given texts with the local model and prints the vectors as JSON
lines, followed by the manager stats on stderr.
"""

import json
import logging
import sys

# Setup must happen before other imports
from monitoring.logger import setup_logging

setup_logging()

from config import settings
from core import EmbeddingError, dispose_embedding_manager, get_embedding_manager
from monitoring import start_metrics_server

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    texts = sys.argv[1:] if argv is None else argv
    if not texts:
        print("usage: python app.py TEXT [TEXT ...]", file=sys.stderr)
        return 2

    if settings.ENABLE_METRICS:
        start_metrics_server()

    manager = get_embedding_manager()
    try:
        for text in texts:
            vector = manager.generate_embedding(text)
            print(json.dumps({"text": text, "embedding": vector}))
        print(json.dumps(manager.stats()._asdict()), file=sys.stderr)
    except EmbeddingError as e:
        logger.error(e.message)
        return 1
    finally:
        dispose_embedding_manager()

    return 0


if __name__ == "__main__":
    sys.exit(main())
