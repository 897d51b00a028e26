import os
import logging
from errors import TransportError

# Keep the interactive session quiet unless --verbose is given
logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger("Ruply")

PORT_FILE = ".nrepl-port"


def set_verbose(verbose=True):
    """Switches our logger between DEBUG and WARNING."""
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def write_and_flush(writer, data):
    """
    Writes a full message to a buffered socket writer and pushes it out.
    Accepts text (sent as UTF-8) or raw bytes.
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    try:
        writer.write(data)
        writer.flush()
    except OSError as e:
        raise TransportError(f"Write failed: {e}") from e
    logger.debug(f"Sent {len(data)} bytes: {data!r}")


def read_port_file(directory="."):
    """
    Returns the port stored in a .nrepl-port file, or None.
    REPL servers drop this file into the project they were started from.
    """
    path = os.path.join(directory, PORT_FILE)
    try:
        with open(path) as f:
            content = f.read().strip()
    except FileNotFoundError:
        return None

    if not content.isdigit():
        logger.warning(f"Ignoring {path}: '{content}' is not a port number")
        return None
    return int(content)
