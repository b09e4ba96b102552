#!/usr/bin/env python3
"""
Print inserts only, as JSON lines.

The ``{"op": "i"}`` filter is applied by the server, so other operations are
never sent to the client.
"""

import json
import sys

from pymongo import MongoClient

from oplogtail import Oplog, DatabaseError
from oplogtail.config import get_settings
from oplogtail.utils.logging import configure_logging


def main() -> int:
    settings = get_settings()
    logger = configure_logging(settings.logging)

    client = MongoClient(settings.mongo.uri, **settings.mongo.client_kwargs())
    try:
        with Oplog(client, settings.oplog.to_options(filter={"op": "i"})) as oplog:
            for insert in oplog:
                print(json.dumps(insert.to_dict()), flush=True)
    except DatabaseError as e:
        logger.error(f"Oplog tail stopped: {e}")
        return 1
    except KeyboardInterrupt:
        return 0
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
