"""
Watch a folder and rebuild its archive when files change.
"""
import logging
import os
import threading
from typing import Callable, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .engine import ArchiveEngine
from .errors import WarcFolderError

logger = logging.getLogger(__name__)


def is_hidden(path: str, root: str) -> bool:
    """True if any component of path below root starts with a dot."""
    rel = os.path.relpath(path, root)
    return any(part.startswith('.') for part in rel.split(os.sep) if part not in ('', os.curdir))


class RebuildHandler(FileSystemEventHandler):
    """
    Records that something changed; the watch loop does the rebuilding so
    that rebuilds never overlap.
    """

    def __init__(self, input_dir: str, output_file: str):
        super().__init__()
        self.input_dir = os.path.abspath(input_dir)
        self.output_file = os.path.abspath(output_file)
        self._dirty = threading.Event()

    def on_any_event(self, event):
        if event.is_directory:
            return
        src = os.path.abspath(event.src_path)
        if src == self.output_file or is_hidden(src, self.input_dir):
            return
        logger.debug(f"Change detected: {event.event_type} {src}")
        self._dirty.set()

    def consume(self) -> bool:
        """Returns True (once) if a change arrived since the last call."""
        if self._dirty.is_set():
            self._dirty.clear()
            return True
        return False


def watch_and_create(engine: ArchiveEngine, input_dir: str, output_file: str,
                     as_files: bool = False, explicit_format: Optional[str] = None,
                     stop_event: Optional[threading.Event] = None,
                     on_rebuild: Optional[Callable[[], None]] = None) -> None:
    """
    Builds the archive once, then rebuilds it after each batch of changes
    until stop_event is set or the user hits Ctrl-C.
    """
    stop_event = stop_event or threading.Event()
    engine.create(input_dir, output_file, as_files, explicit_format)

    handler = RebuildHandler(input_dir, output_file)
    observer = Observer()
    observer.schedule(handler, input_dir, recursive=True)
    observer.start()
    logger.info(f"Watching {input_dir} for changes")

    try:
        while not stop_event.wait(engine.config.watch_debounce):
            if not handler.consume():
                continue
            logger.info(f"Changes detected in {input_dir}, rebuilding archive...")
            try:
                engine.create(input_dir, output_file, as_files, explicit_format)
            except WarcFolderError as e:
                # Keep watching; the next edit may fix the folder
                logger.error(f"Rebuild failed: {e}")
                continue
            logger.info("Archive rebuilt successfully")
            if on_rebuild:
                on_rebuild()
    except KeyboardInterrupt:
        logger.info("Watcher stopped")
    finally:
        observer.stop()
        observer.join()
