def _is_meaningful(value):
    if value is None:
        return False
    v = str(value).strip()
    if v == "":
        return False
    return v.lower() not in {"n/a", "none", "null", "-"}


def pick_first_nonempty(*candidates):
    for c in candidates:
        if _is_meaningful(c):
            return str(c).strip()
    return None


def format_timestamp(timestamp_str):
    # Go/Grafana usam 0001-01-01T00:00:00Z como "sem data"
    if not timestamp_str or timestamp_str == 'N/A' or str(timestamp_str).startswith('0001-01-01'):
        return None
    clean = str(timestamp_str).replace('T', ' ').replace('Z', '')
    # remove frações de segundo (ex.: 16:29:55.933582749)
    if '.' in clean:
        clean = clean.split('.')[0]
    return clean + ' UTC' if str(timestamp_str).endswith('Z') else clean


def format_labels(labels, skip=()):
    if not isinstance(labels, dict):
        return ''
    items = [f"{k}={v}" for k, v in sorted(labels.items()) if k not in skip and _is_meaningful(v)]
    return ', '.join(items)
