#!/usr/bin/env python3
"""
Search and aggregation requests behind the LogTrace API

Each *_request() function returns keyword arguments for Elasticsearch.search
(or .count); each shape_*() function turns the raw response into the JSON
the dashboard expects. Keeping them apart from the routes lets the
shaping be tested against canned responses.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from .simulator import SERVICES, isoformat_ms

TIME_RANGES = {
    "15m": timedelta(minutes=15),
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": timedelta(hours=24),
}

LEVELS = ["info", "warn", "error", "debug"]


def time_range_bounds(time_range: Optional[str], now: Optional[datetime] = None) -> Optional[Dict[str, str]]:
    """{"from", "to"} for a known range key, None otherwise"""
    span = TIME_RANGES.get(time_range or "")
    if span is None:
        return None
    now = now or datetime.now(timezone.utc)
    return {"from": isoformat_ms(now - span), "to": isoformat_ms(now)}


def _last(minutes: int, now: datetime) -> Dict[str, Any]:
    return {"range": {"timestamp": {"gte": isoformat_ms(now - timedelta(minutes=minutes)), "lte": isoformat_ms(now)}}}


def _bucket_count(buckets: List[Dict[str, Any]], key: str) -> int:
    for bucket in buckets:
        if str(bucket.get("key", "")).lower() == key:
            return bucket.get("doc_count", 0)
    return 0


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------

def log_search_request(from_: int = 0, size: int = 50, level: Optional[str] = None,
                       service: Optional[str] = None, q: Optional[str] = None,
                       time_range: Optional[str] = None,
                       now: Optional[datetime] = None) -> Dict[str, Any]:
    """Filtered, newest-first log search"""
    must = []
    if level:
        must.append({"term": {"level": level.lower()}})
    if service:
        must.append({"term": {"service": service}})
    if q and q.strip():
        must.append({
            "match": {
                "message": {"query": q.strip(), "operator": "and", "fuzziness": "AUTO"}
            }
        })
    bounds = time_range_bounds(time_range, now)
    if bounds:
        must.append({"range": {"timestamp": {"gte": bounds["from"], "lte": bounds["to"]}}})

    return {
        "from_": from_,
        "size": size,
        "query": {"bool": {"must": must}} if must else {"match_all": {}},
        "sort": [{"timestamp": "desc"}],
    }


def shape_log_hits(result: Dict[str, Any]) -> Dict[str, Any]:
    hits = result.get("hits", {})
    total = hits.get("total", 0)
    if isinstance(total, dict):
        total = total.get("value", 0)
    return {
        "total": total,
        "hits": [{"id": hit["_id"], **hit.get("_source", {})} for hit in hits.get("hits", [])],
    }


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

def dashboard_stats_requests(now: Optional[datetime] = None) -> Dict[str, Dict[str, Any]]:
    """
    The four requests behind /api/dashboard/stats

    Returns:
        {"today": count kwargs, "levels", "services", "duration": search kwargs}
    """
    now = now or datetime.now(timezone.utc)
    today_start = now.astimezone().replace(hour=0, minute=0, second=0, microsecond=0)
    last_hour = _last(60, now)

    return {
        "today": {
            "query": {"range": {"timestamp": {"gte": isoformat_ms(today_start), "lte": isoformat_ms(now)}}},
        },
        "levels": {
            "size": 0,
            "query": last_hour,
            "aggs": {
                "by_level": {"terms": {"field": "level", "size": 10}},
                "total": {"value_count": {"field": "level"}},
            },
        },
        "services": {
            "size": 0,
            "query": last_hour,
            "aggs": {"services": {"cardinality": {"field": "service"}}},
        },
        "duration": {
            "size": 0,
            "query": {"bool": {"must": [last_hour, {"range": {"duration": {"gte": 0}}}]}},
            "aggs": {"avg_duration": {"avg": {"field": "duration"}}},
        },
    }


def shape_dashboard_stats(today: Dict[str, Any], levels: Dict[str, Any],
                          services: Dict[str, Any], duration: Dict[str, Any]) -> Dict[str, Any]:
    level_aggs = levels.get("aggregations", {})
    total = level_aggs.get("total", {}).get("value") or 0
    error_count = _bucket_count(level_aggs.get("by_level", {}).get("buckets", []), "error")
    error_rate = round(error_count / total * 100, 2) if total > 0 else 0

    avg_duration = duration.get("aggregations", {}).get("avg_duration", {}).get("value") or 0

    return {
        "totalLogsToday": today.get("count", 0),
        "errorRate": error_rate,
        "activeServices": services.get("aggregations", {}).get("services", {}).get("value") or 0,
        "avgResponseTime": int(round(avg_duration)),
    }


def volume_request(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Five-minute histogram of the last hour, split by level"""
    now = now or datetime.now(timezone.utc)
    start = isoformat_ms(now - timedelta(minutes=60))
    end = isoformat_ms(now)
    return {
        "size": 0,
        "query": {"range": {"timestamp": {"gte": start, "lte": end}}},
        "aggs": {
            "over_time": {
                "date_histogram": {
                    "field": "timestamp",
                    "fixed_interval": "5m",
                    "min_doc_count": 0,
                    "extended_bounds": {"min": start, "max": end},
                },
                "aggs": {"by_level": {"terms": {"field": "level", "size": 10}}},
            }
        },
    }


def shape_volume(result: Dict[str, Any]) -> Dict[str, Any]:
    data = []
    for bucket in result.get("aggregations", {}).get("over_time", {}).get("buckets", []):
        level_buckets = bucket.get("by_level", {}).get("buckets", [])
        row = {"time": bucket.get("key_as_string")}
        for level in LEVELS:
            row[level.upper()] = _bucket_count(level_buckets, level)
        row["total"] = sum(row[level.upper()] for level in LEVELS)
        data.append(row)
    return {"data": data}


def service_volume_request(now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    return {
        "size": 0,
        "query": _last(60, now),
        "aggs": {"by_service": {"terms": {"field": "service", "size": 20}}},
    }


def shape_service_volume(result: Dict[str, Any], known_services: Optional[List[str]] = None) -> Dict[str, Any]:
    known = known_services or SERVICES
    buckets = result.get("aggregations", {}).get("by_service", {}).get("buckets", [])
    return {
        "data": [
            {"name": bucket["key"], "value": bucket["doc_count"]}
            for bucket in buckets
            if bucket["key"] in known
        ]
    }


# ---------------------------------------------------------------------------
# Services overview
# ---------------------------------------------------------------------------

def services_overview_request(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Per-service totals over the last hour, volume over the last 30 minutes"""
    now = now or datetime.now(timezone.utc)
    return {
        "size": 0,
        "query": _last(60, now),
        "aggs": {
            "by_service": {
                "terms": {"field": "service", "size": 20, "order": {"_key": "asc"}},
                "aggs": {
                    "error_count": {"filter": {"term": {"level": "error"}}},
                    "avg_duration": {"avg": {"field": "duration"}},
                    "last_seen": {"max": {"field": "timestamp"}},
                    "volume_over_time": {
                        "date_histogram": {
                            "field": "timestamp",
                            "fixed_interval": "5m",
                            "min_doc_count": 0,
                            "extended_bounds": {
                                "min": isoformat_ms(now - timedelta(minutes=30)),
                                "max": isoformat_ms(now),
                            },
                        }
                    },
                },
            }
        },
    }


def shape_services_overview(result: Dict[str, Any], known_services: Optional[List[str]] = None) -> Dict[str, Any]:
    """One entry per known service, zero-filled when it has no recent logs"""
    buckets = {
        bucket["key"]: bucket
        for bucket in result.get("aggregations", {}).get("by_service", {}).get("buckets", [])
    }

    services = []
    for name in known_services or SERVICES:
        bucket = buckets.get(name)
        if bucket is None:
            services.append({
                "name": name,
                "totalLogs": 0,
                "errorCount": 0,
                "errorRate": 0,
                "avgDuration": 0,
                "lastSeen": None,
                "volumeOverTime": [],
            })
            continue

        total = bucket.get("doc_count", 0)
        errors = bucket.get("error_count", {}).get("doc_count", 0)
        services.append({
            "name": name,
            "totalLogs": total,
            "errorCount": errors,
            "errorRate": round(errors / total * 100, 2) if total > 0 else 0,
            "avgDuration": int(round(bucket.get("avg_duration", {}).get("value") or 0)),
            "lastSeen": bucket.get("last_seen", {}).get("value"),
            "volumeOverTime": [
                {"time": v.get("key_as_string"), "count": v.get("doc_count", 0)}
                for v in bucket.get("volume_over_time", {}).get("buckets", [])
            ],
        })

    return {"services": services}
