import bdb
import json
import logging
import os
import pdb
import sys
from argparse import ArgumentParser
from typing import List, MutableMapping

from .._helpers import JSONResultsEncoder, Timer
from ..errors import LogError
from .prefix import PrefixPattern
from .reader import read_log_file

logger = logging.getLogger(__name__)


def strtobool(value: str) -> bool:
    return value.lower() in ("y", "yes", "t", "true", "on", "1")


def main(
    argv: List[str] = sys.argv[1:],
    environ: MutableMapping[str, str] = os.environ,
) -> int:
    debug = strtobool(environ.get("DEBUG", "n"))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname).1s: %(message)s",
    )
    parser = ArgumentParser(prog="python -m pgcollect.log")
    parser.add_argument(
        "--span",
        type=int,
        default=5,
        metavar="MINUTES",
        help="Examine the last MINUTES minutes of logs. default: %(default)s",
    )
    parser.add_argument(
        "log_line_prefix",
        metavar="LOG_LINE_PREFIX",
        help="log_line_prefix as configured in PostgreSQL.",
    )
    parser.add_argument(
        "filename",
        metavar="FILENAME",
        help="Log filename.",
    )
    args = parser.parse_args(argv)

    try:
        pattern = PrefixPattern.from_configuration(args.log_line_prefix)
        with Timer() as timer:
            results = read_log_file(args.filename, pattern, args.span)
        print(json.dumps(results, cls=JSONResultsEncoder))
        logger.info("Collected %d facts in %s.", len(results), timer.delta)
    except LogError as e:
        logger.error("%s", e)
        return 1
    except (KeyboardInterrupt, bdb.BdbQuit):  # pragma: nocover
        logger.info("Interrupted.")
        return 1
    except Exception:
        logger.exception("Unhandled error:")
        if debug:  # pragma: nocover
            pdb.post_mortem(sys.exc_info()[2])
        return 1
    return 0


if "__main__" == __name__:  # pragma: nocover
    sys.exit(main(argv=sys.argv[1:], environ=os.environ))
