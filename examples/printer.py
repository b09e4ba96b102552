#!/usr/bin/env python3
"""
Print every operation written to the oplog of a replica set.

Connection settings come from the environment (see ``oplogtail.config``):

    MONGO_URI=mongodb://localhost:27017 python examples/printer.py
"""

import sys

from pymongo import MongoClient

from oplogtail import Oplog, DatabaseError
from oplogtail.config import get_settings
from oplogtail.utils.logging import SessionContext, configure_logging


def main() -> int:
    settings = get_settings()
    logger = configure_logging(settings.logging)

    client = MongoClient(settings.mongo.uri, **settings.mongo.client_kwargs())
    try:
        with Oplog(client, settings.oplog.to_options()) as oplog, SessionContext(oplog.session_id):
            for operation in oplog:
                print(operation, flush=True)
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
