"""Ocean Data View spreadsheet export for a folder of cores."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Sequence
import datetime
import logging

import pandas as pd

from .constants import COMMON_DATA_KEYS, NON_PROXY_KEYS
from .errors import ValidationError
from .models import Core, Folder, Section

logger = logging.getLogger(__name__)

META_COLUMNS = ["Cruise", "Station", "Type", "Lon (°E)", "Lat (°N)", "Bot. Depth [m]"]
DEPTH_COLUMN = "Depth [cm]"
AGE_COLUMN = "Age [ka]"


def _proxy_columns(sections: Sequence[Section]) -> List[str]:
    seen: Dict[str, None] = {}
    for s in sections:
        for p in s.data_points:
            for k in p:
                if k not in NON_PROXY_KEYS:
                    seen.setdefault(k, None)
    known = [k for k in COMMON_DATA_KEYS if k in seen]
    return known + sorted(k for k in seen if k not in COMMON_DATA_KEYS)


def folder_to_frame(cores: Sequence[Core], sections: Sequence[Section]) -> pd.DataFrame:
    by_core = {c.id: c for c in cores}
    proxies = _proxy_columns(sections)
    rows = []
    for s in sections:
        core = by_core.get(s.core_id)
        if core is None:
            continue
        for p in s.data_points:
            row = {
                "Cruise": core.project,
                "Station": f"{core.id} {s.name}",
                "Type": "B",
                "Lon (°E)": core.location.lon,
                "Lat (°N)": core.location.lat,
                "Bot. Depth [m]": core.water_depth,
                DEPTH_COLUMN: p.get("depth"),
                AGE_COLUMN: p.get("age"),
            }
            for k in proxies:
                row[k] = p.get(k)
            rows.append(row)
    return pd.DataFrame(rows, columns=META_COLUMNS + [DEPTH_COLUMN, AGE_COLUMN] + proxies)


def export_folder_to_odv(folder: Folder, cores: Sequence[Core], sections: Sequence[Section], out: Path) -> Path:
    """Write every data point of the folder's cores as an ODV spreadsheet.

    Only cores whose ``folder_id`` matches ``folder`` are exported.
    """
    members = [c for c in cores if c.folder_id == folder.id]
    if not members:
        raise ValidationError(f'Folder "{folder.name}" has no cores to export.')
    ids = {c.id for c in members}
    df = folder_to_frame(members, [s for s in sections if s.core_id in ids])
    out = Path(out)
    out.parent.mkdir(parents=True, exist_ok=True)
    header = [
        "//ODV Spreadsheet exported by PaleoCore",
        f"//Folder: {folder.name}",
        f"//Exported: {datetime.datetime.now().isoformat(timespec='seconds')}",
        f"//Cores: {', '.join(sorted(ids))}",
    ]
    with open(out, "w", encoding="utf-8", newline="") as fh:
        fh.write("\n".join(header) + "\n")
        df.to_csv(fh, sep="\t", index=False, na_rep="", lineterminator="\n")
    logger.info("Exported %d rows for folder %s to %s", len(df), folder.name, out)
    return out


__all__ = ["folder_to_frame", "export_folder_to_odv"]
