import json
import logging
import os
from typing import Iterable, Iterator, List

from gmpy2 import mpz

from batchgcd import codec
from batchgcd.errors import DecodeError, MissingLevelError, StorageIOError

LOGGER = logging.getLogger("batchgcd.level_store")

SHAPE_FILE = "shape.json"
ARTIFACT_SUFFIX = ".gmp"


class LevelStore:
    """
    Persistiert die Ebenen des Produktbaums: ein Verzeichnis pro Ebene, eine Datei pro Element.
    Die Anzahl der Elemente je Ebene (TreeShape) liegt in shape.json neben den Ebenen,
    damit spätere Phasen auch in einem neuen Prozess ohne Verzeichnis-Scan lesen können.
    """

    def __init__(self, root: str):
        self.root = str(root)
        self._shape = None

    # -------------------------------------------------------------------------
    # Pfade

    def level_dir(self, level: int) -> str:
        return os.path.join(self.root, f"level{level}")

    def artifact_path(self, level: int, position: int) -> str:
        return os.path.join(self.level_dir(level), f"{position}{ARTIFACT_SUFFIX}")

    def shape_path(self) -> str:
        return os.path.join(self.root, SHAPE_FILE)

    # -------------------------------------------------------------------------
    # TreeShape

    def _load_shape(self) -> List[int]:
        """
        Lädt shape.json einmalig; fehlt die Datei, ist die Form leer.
        """
        if self._shape is not None:
            return self._shape
        try:
            with open(self.shape_path(), "r", encoding="utf-8") as file:
                data = json.load(file)
        except FileNotFoundError:
            self._shape = []
            return self._shape
        except (OSError, json.decoder.JSONDecodeError) as e:
            raise StorageIOError(f"Unreadable shape metadata {self.shape_path()}: {e}")

        levels = data.get("levels") if isinstance(data, dict) else None
        if not isinstance(levels, list) or not all(isinstance(c, int) and c >= 0 for c in levels):
            raise StorageIOError(f"Malformed shape metadata in {self.shape_path()}")
        self._shape = levels
        return self._shape

    def _save_shape(self, shape: List[int]) -> None:
        os.makedirs(self.root, exist_ok=True)
        tmp_path = self.shape_path() + ".tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as file:
                json.dump({"levels": shape}, file)
            os.replace(tmp_path, self.shape_path())
        except OSError as e:
            raise StorageIOError(f"Could not write shape metadata {self.shape_path()}: {e}")
        self._shape = shape

    def record_shape(self, level: int, count: int) -> None:
        """
        Merkt sich die Elementanzahl einer Ebene und schreibt shape.json sofort zurück.
        Ebenen werden von unten nach oben aufgezeichnet, Lücken sind nicht erlaubt.
        """
        shape = list(self._load_shape())
        if level < 0 or level > len(shape):
            raise ValueError(f"Shape for level {level} recorded out of order (have {len(shape)} levels)")
        if level == len(shape):
            shape.append(int(count))
        else:
            shape[level] = int(count)
        self._save_shape(shape)

    def shape_of(self, level: int) -> int:
        shape = self._load_shape()
        if level < 0 or level >= len(shape):
            raise MissingLevelError("No shape recorded for level", level=level)
        return shape[level]

    def height(self) -> int:
        """
        Anzahl der aufgezeichneten Ebenen (H).
        """
        return len(self._load_shape())

    def reset_shape(self) -> None:
        """
        Verwirft alte Metadaten vor einem neuen Aufbau. Alte Dateien bleiben liegen und werden überschrieben.
        """
        self._save_shape([])

    # -------------------------------------------------------------------------
    # Ebenen

    def write_level(self, level: int, values: Iterable) -> int:
        """
        Schreibt jedes Element der Ebene in eine eigene Datei level<l>/<i>.gmp.
        Rückgabe: Anzahl geschriebener Elemente.
        """
        directory = self.level_dir(level)
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"Could not create {directory}: {e}", level=level)

        count = 0
        for position, value in enumerate(values):
            path = self.artifact_path(level, position)
            try:
                with open(path, "wb") as file:
                    file.write(codec.encode(value))
            except OSError as e:
                raise StorageIOError(f"Could not write {path}: {e}", level=level, position=position)
            count += 1
        LOGGER.info("   Writing product tree level to %s (%d files)", directory, count)
        return count

    def read_element(self, level: int, position: int) -> mpz:
        path = self.artifact_path(level, position)
        try:
            with open(path, "rb") as file:
                data = file.read()
        except FileNotFoundError:
            raise MissingLevelError(f"Missing artifact {path}", level=level, position=position)
        except OSError as e:
            raise StorageIOError(f"Could not read {path}: {e}", level=level, position=position)

        try:
            return codec.decode(data)
        except DecodeError as e:
            raise DecodeError(e.message, level=level, position=position) from e

    def iter_level(self, level: int) -> Iterator[mpz]:
        """
        Liefert die Elemente einer Ebene nacheinander, ohne die ganze Ebene im Speicher zu halten.
        """
        count = self.shape_of(level)
        for position in range(count):
            yield self.read_element(level, position)

    def read_level(self, level: int) -> List[mpz]:
        values = list(self.iter_level(level))
        if values:
            LOGGER.info("   ok, read %d ints of %d bits from %s",
                        len(values), values[0].bit_length(), self.level_dir(level))
        return values
