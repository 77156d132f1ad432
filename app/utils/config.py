# app/utils/config.py
import copy
import os
import yaml

class AttrDict(dict):
    """Dict that also supports attribute access: cfg.hijri and cfg['hijri'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e
    def __setattr__(self, key, value):
        self[key] = value

DEFAULTS = {
    "hijri": {"adjustment": -1},
    "prayer": {"method": "mwl", "asr": "shafii"},
    "cache": {"timetable_size": 256},
}

def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj

def _merge(base, extra):
    out = dict(base)
    for k, v in (extra or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out

def load_config(path: str = None):
    """
    Load YAML config from `path` on top of the built-in DEFAULTS.
    A missing file is not an error (defaults apply).
    Optional env overrides:
      - MIQAT_HIJRI_ADJUSTMENT  (hijri.adjustment, kept as given; parsed by the engine)
      - MIQAT_DEFAULT_METHOD    (prayer.method)
      - MIQAT_DEFAULT_ASR       (prayer.asr)
      - MIQAT_CACHE_SIZE        (cache.timetable_size)
    Returns an AttrDict for convenient access.
    """
    data = {}
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    data = _merge(copy.deepcopy(DEFAULTS), data)

    adj = os.getenv("MIQAT_HIJRI_ADJUSTMENT")
    if adj is not None:
        data["hijri"]["adjustment"] = adj
    method = os.getenv("MIQAT_DEFAULT_METHOD")
    if method:
        data["prayer"]["method"] = method.strip().lower()
    asr = os.getenv("MIQAT_DEFAULT_ASR")
    if asr:
        data["prayer"]["asr"] = asr.strip().lower()
    size = os.getenv("MIQAT_CACHE_SIZE")
    if size:
        try:
            data["cache"]["timetable_size"] = int(size)
        except ValueError:
            pass

    return _to_attr(data)
