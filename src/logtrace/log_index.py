#!/usr/bin/env python3
"""
Elasticsearch access for LogTrace

Connection setup, index bootstrap and the bulk submission used by the
log simulator.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from elasticsearch import Elasticsearch, helpers

from .config import Settings
from .errors import IndexUnavailableError

logger = logging.getLogger(__name__)

LOG_MAPPING = {
    "properties": {
        "timestamp": {"type": "date"},
        "level": {"type": "keyword"},
        "service": {"type": "keyword"},
        "message": {"type": "text"},
        "traceId": {"type": "keyword"},
        "duration": {"type": "integer"},
        "archived": {"type": "boolean"},
    }
}


def setup_elasticsearch(settings: Settings) -> Elasticsearch:
    """Setup Elasticsearch connection"""
    es_config = {}

    # Cloud configuration
    if settings.elastic_cloud_id:
        es_config["cloud_id"] = settings.elastic_cloud_id
        if settings.elastic_api_key:
            es_config["api_key"] = settings.elastic_api_key
        elif settings.elastic_password:
            es_config["basic_auth"] = ("elastic", settings.elastic_password)
    else:
        # Local configuration
        es_config["hosts"] = [settings.elasticsearch_url]
        if settings.elastic_api_key:
            es_config["api_key"] = settings.elastic_api_key
        elif settings.elastic_password:
            es_config["basic_auth"] = ("elastic", settings.elastic_password)

    return Elasticsearch(**es_config)


@dataclass
class BulkResult:
    """Outcome of one bulk submission"""
    errors: bool
    item_errors: List[Dict[str, Any]] = field(default_factory=list)
    indexed: int = 0


class LogIndex:
    """The log index and the operations the backend needs on it"""

    def __init__(self, es: Elasticsearch, index_name: str = "logs"):
        """
        Args:
            es: Elasticsearch client
            index_name: Name of the log index
        """
        self.es = es
        self.index_name = index_name

    def init(self) -> bool:
        """
        Make sure the cluster answers and the log index exists

        Raises:
            IndexUnavailableError: If the cluster does not answer the ping
        """
        if not self.es.ping():
            raise IndexUnavailableError("Elasticsearch is not available")

        if not self.es.indices.exists(index=self.index_name):
            self.es.indices.create(index=self.index_name, mappings=LOG_MAPPING)
            logger.info(f"✅ Created index '{self.index_name}'")

        return True

    def ping(self) -> bool:
        """Check cluster reachability without raising"""
        try:
            return bool(self.es.ping())
        except Exception:
            return False

    def index_document(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """Index a single document"""
        return self.es.index(index=self.index_name, document=document)

    def bulk_index(self, documents: Iterable[Dict[str, Any]], index_name: Optional[str] = None) -> BulkResult:
        """
        Bulk index documents, collecting item failures instead of raising

        Returns:
            BulkResult with the per-item errors reported by the cluster
        """
        target = index_name or self.index_name
        actions = [{"_index": target, "_source": doc} for doc in documents]
        success, errors = helpers.bulk(self.es, actions, raise_on_error=False, refresh=False)
        return BulkResult(errors=bool(errors), item_errors=list(errors), indexed=success)

    async def submit_batch(self, index_name: str, records: Iterable[Any]) -> BulkResult:
        """
        Submit simulator records without blocking the event loop

        Args:
            index_name: Target index
            records: LogRecord instances

        Returns:
            BulkResult
        """
        documents = [record.to_document() for record in records]
        return await asyncio.to_thread(self.bulk_index, documents, index_name)

    def index_stats(self) -> Dict[str, Any]:
        """Primary doc count and store size of the log index"""
        result = self.es.indices.stats(index=self.index_name)
        primaries = result.get("indices", {}).get(self.index_name, {}).get("primaries", {})
        return {
            "index": self.index_name,
            "docs": primaries.get("docs", {}).get("count", 0),
            "size": primaries.get("store", {}).get("size_in_bytes", 0),
        }

    def delete_older_than(self, cutoff_iso: str, service: Optional[str] = None) -> int:
        """
        Delete documents with a timestamp before cutoff_iso

        Args:
            cutoff_iso: ISO-8601 cutoff
            service: Only delete this service's documents when given

        Returns:
            Number of deleted documents
        """
        age_filter = {"range": {"timestamp": {"lt": cutoff_iso}}}
        if service:
            query = {"bool": {"must": [{"term": {"service": service}}, age_filter]}}
        else:
            query = age_filter

        result = self.es.delete_by_query(index=self.index_name, query=query)
        return result.get("deleted", 0)
