import os

import requests

from sqlite import initialise_db
from streamdapp.handlers import handle
from streamdapp.util import get_rollup_server, logger


def run():
    rollup_server = get_rollup_server()
    logger.info(f"HTTP rollup_server url is {rollup_server}")

    if not os.path.exists(os.getenv("DB_FILE_PATH", "dapp.sqlite")):
        initialise_db()

    finish = {"status": "accept"}
    while True:
        logger.info("Sending finish")
        response = requests.post(rollup_server + "/finish", json=finish)
        logger.info(f"Received finish status {response.status_code}")
        if response.status_code == 202:
            logger.info("No pending rollup request, trying again")
        else:
            rollup_request = response.json()
            finish["status"] = handle(rollup_request)


if __name__ == "__main__":
    run()
