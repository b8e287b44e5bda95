"""State store for persistent feature task records."""
import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import ValidationError

from ..exceptions import CorruptStateError
from ..models.feature import FeatureState
from .constants import HISTORY_DIR_NAME, LOCK_FILE_NAME, PLAN_FILE_NAME, STATE_FILE_NAME

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` so readers see the old or the new file, never a mix."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class StateStore:
    """Reads and writes one state record per feature id."""

    def __init__(self, features_dir: Path):
        """Initialize state store.

        Args:
            features_dir: The .gba/features directory of the project
        """
        self.features_dir = features_dir

    def _get_feature_dir(self, feature_id: str) -> Path:
        """Get the directory for a specific feature."""
        return self.features_dir / feature_id

    def state_path(self, feature_id: str) -> Path:
        return self._get_feature_dir(feature_id) / STATE_FILE_NAME

    def lock_path(self, feature_id: str) -> Path:
        return self._get_feature_dir(feature_id) / LOCK_FILE_NAME

    def plan_path(self, feature_id: str) -> Path:
        return self._get_feature_dir(feature_id) / PLAN_FILE_NAME

    def history_dir(self, feature_id: str) -> Path:
        return self._get_feature_dir(feature_id) / HISTORY_DIR_NAME

    def exists(self, feature_id: str) -> bool:
        return self.state_path(feature_id).is_file()

    def load(self, feature_id: str) -> Optional[FeatureState]:
        """Load the record for a feature.

        Args:
            feature_id: The feature ID

        Returns:
            FeatureState if a record exists, None otherwise

        Raises:
            CorruptStateError: If the record exists but cannot be parsed
        """
        path = self.state_path(feature_id)
        if not path.is_file():
            return None

        try:
            data = yaml.safe_load(path.read_text(encoding='utf-8'))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            raise CorruptStateError(feature_id, path, f"unreadable: {e}") from e

        if not isinstance(data, dict):
            raise CorruptStateError(feature_id, path, "record is not a mapping")

        try:
            record = FeatureState.model_validate(data)
        except ValidationError as e:
            raise CorruptStateError(feature_id, path, f"invalid record: {e}") from e

        if record.feature_id != feature_id:
            raise CorruptStateError(
                feature_id, path, f"record belongs to feature id {record.feature_id}"
            )
        return record

    def save(self, record: FeatureState) -> None:
        """Persist the full snapshot of a record atomically."""
        record.check_invariants()
        path = self.state_path(record.feature_id)
        content = yaml.safe_dump(
            record.model_dump(mode="json"),
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
        )
        atomic_write_text(path, content)
        logger.debug(
            "Saved state for feature %s (%s, turns=%d)",
            record.feature_id, record.state.value, record.execution.turns,
        )

    def supersede(self, feature_id: str) -> Optional[Path]:
        """Move the live record into the feature's history directory.

        Used on an explicit fresh restart; the old record is kept for audit.

        Returns:
            Path of the archived record, or None if there was no record
        """
        path = self.state_path(feature_id)
        if not path.is_file():
            return None

        history = self.history_dir(feature_id)
        history.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        target = history / f"state-{stamp}.yml"
        shutil.move(str(path), str(target))
        logger.info(f"Superseded state for feature {feature_id}: {target}")
        return target

    def load_plan(self, feature_id: str) -> Optional[str]:
        """Get the planning output for a feature, if any."""
        path = self.plan_path(feature_id)
        if path.is_file():
            return path.read_text(encoding='utf-8')
        return None

    def save_plan(self, feature_id: str, text: str) -> Path:
        path = self.plan_path(feature_id)
        atomic_write_text(path, text)
        return path

    def list_feature_ids(self) -> List[str]:
        """List ids of all features that have a state record."""
        if not self.features_dir.is_dir():
            return []
        return sorted(
            entry.name for entry in self.features_dir.iterdir()
            if entry.is_dir() and (entry / STATE_FILE_NAME).is_file()
        )

    def list_records(self) -> List[FeatureState]:
        """Load every readable record, newest update first.

        Corrupt records are logged and skipped here; ``load`` still raises for them.
        """
        records = []
        for feature_id in self.list_feature_ids():
            try:
                record = self.load(feature_id)
            except CorruptStateError as e:
                logger.warning(str(e))
                continue
            if record:
                records.append(record)

        records.sort(key=lambda r: r.timestamps.updated_at, reverse=True)
        return records
