"""Unpack a template archive and merge it into a project directory."""

import json
import logging
import shutil
import tempfile
import zipfile
from pathlib import Path

from .errors import MaterializationError
from .models import FetchedArchive, MaterializationResult

logger = logging.getLogger(__name__)


def merge_json_files(existing_path: Path, new_content: dict) -> dict:
    """Merge new JSON content into existing JSON file.

    Performs a deep merge where:
    - New keys are added
    - Existing keys are preserved unless overwritten by new content
    - Nested dictionaries are merged recursively
    - Lists and other values are replaced (not merged)

    Args:
        existing_path: Path to existing JSON file
        new_content: New JSON content to merge in

    Returns:
        Merged JSON content as dict
    """
    try:
        with open(existing_path, 'r', encoding='utf-8') as f:
            existing_content = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        # If file doesn't exist or is invalid, just use new content
        return new_content

    if not isinstance(existing_content, dict):
        return new_content

    def deep_merge(base: dict, update: dict) -> dict:
        result = base.copy()
        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    return deep_merge(existing_content, new_content)


def handle_vscode_settings(sub_item: Path, dest_file: Path) -> None:
    """Merge .vscode/settings.json into an existing one instead of overwriting it."""
    try:
        with open(sub_item, 'r', encoding='utf-8') as f:
            new_settings = json.load(f)

        if dest_file.exists():
            merged = merge_json_files(dest_file, new_settings)
            with open(dest_file, 'w', encoding='utf-8') as f:
                json.dump(merged, f, indent=4)
                f.write('\n')
            logger.debug("Merged %s", dest_file)
        else:
            shutil.copy2(sub_item, dest_file)

    except (OSError, ValueError) as e:
        logger.warning("Could not merge %s, copying instead: %s", dest_file, e)
        shutil.copy2(sub_item, dest_file)


def _copy_file(source: Path, dest_file: Path) -> None:
    dest_file.parent.mkdir(parents=True, exist_ok=True)
    if dest_file.name == "settings.json" and dest_file.parent.name == ".vscode":
        handle_vscode_settings(source, dest_file)
    else:
        shutil.copy2(source, dest_file)


def _merge_tree(source_dir: Path, project_path: Path) -> int:
    """Copy every entry of ``source_dir`` into ``project_path``; return files copied."""
    copied = 0
    for item in source_dir.iterdir():
        dest_path = project_path / item.name
        if item.is_dir():
            if dest_path.exists():
                logger.debug("Merging directory: %s", item.name)
                for sub_item in item.rglob('*'):
                    if sub_item.is_file():
                        _copy_file(sub_item, dest_path / sub_item.relative_to(item))
                        copied += 1
            else:
                shutil.copytree(item, dest_path)
                copied += sum(1 for p in dest_path.rglob('*') if p.is_file())
        else:
            if dest_path.exists():
                logger.debug("Overwriting file: %s", item.name)
            _copy_file(item, dest_path)
            copied += 1
    return copied


def find_source_root(extract_dir: Path) -> Path:
    """Return the single wrapping directory of an archive, or ``extract_dir`` itself."""
    extracted_items = list(extract_dir.iterdir())
    if len(extracted_items) == 1 and extracted_items[0].is_dir():
        logger.debug("Found nested directory structure: %s", extracted_items[0].name)
        return extracted_items[0]
    return extract_dir


def unpack_archive(archive: FetchedArchive, extract_dir: Path) -> Path:
    """Extract ``archive`` into ``extract_dir`` and return the template root in it.

    A temporary archive is removed afterwards whether or not extraction worked.
    """
    zip_path = Path(archive.local_file_path)
    try:
        extract_dir.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(zip_path, 'r') as zip_ref:
            zip_ref.extractall(extract_dir)
        return find_source_root(extract_dir)
    except (OSError, zipfile.BadZipFile) as e:
        raise MaterializationError(f"Error extracting {zip_path.name}: {e}") from e
    finally:
        if archive.is_temporary and zip_path.exists():
            zip_path.unlink()
            logger.debug("Cleaned up: %s", zip_path.name)


def materialize_archive(
    archive: FetchedArchive,
    project_path: Path,
    is_existing_directory: bool = False,
) -> MaterializationResult:
    """Extract ``archive`` and merge its contents into ``project_path``.

    The archive is unpacked into a scratch directory first. Directories that
    already exist are merged, files are overwritten. The scratch directory and
    a temporary archive are always removed. When this call created
    ``project_path`` (new project mode and the directory did not exist yet) a
    failure removes it entirely; a directory that was already there is kept.

    Raises:
        MaterializationError: extraction or copying failed.
    """
    project_path = Path(project_path)
    zip_path = Path(archive.local_file_path)
    created = not is_existing_directory and not project_path.exists()
    temp_dir = None

    try:
        if not is_existing_directory:
            project_path.mkdir(parents=True, exist_ok=True)

        temp_dir = Path(tempfile.mkdtemp(prefix="buildforce-"))
        source_dir = unpack_archive(archive, temp_dir)
        copied = _merge_tree(source_dir, project_path)
        logger.debug("Copied %d files into %s", copied, project_path)
    except Exception as e:
        if created and project_path.exists():
            shutil.rmtree(project_path)
        if isinstance(e, MaterializationError):
            raise
        raise MaterializationError(f"Error extracting {zip_path.name}: {e}") from e
    finally:
        if temp_dir is not None and temp_dir.exists():
            shutil.rmtree(temp_dir, ignore_errors=True)
        if archive.is_temporary and zip_path.exists():
            zip_path.unlink()

    return MaterializationResult(destination_path=project_path, copied_entry_count=copied)
