# client side search and filtering over records we already fetched


def lookup(record, path):
    # "uploader.name" style paths into nested dicts
    value = record
    for part in path.split('.'):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def search_records(records, query, fields):
    query = (query or '').strip().lower()
    if not query:
        return list(records)
    matches = []
    for record in records:
        for field in fields:
            value = lookup(record, field)
            if value is not None and query in str(value).lower():
                matches.append(record)
                break
    return matches


def filter_records(records, field, value):
    if value in (None, '', 'all'):
        return list(records)
    return [r for r in records if str(lookup(r, field)) == str(value)]


def distinct_values(records, field):
    # options for a filter dropdown
    values = {lookup(r, field) for r in records}
    return sorted(str(v) for v in values if v not in (None, ''))
