# manual_search/eval.py
from __future__ import annotations

import argparse
import re
from collections import Counter
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set

import pandas as pd

from . import config
from .config import RetrievalResponse

# ---------- IO helpers ----------

def _read_any(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    ext = path.suffix.lower()
    if ext in [".xlsx", ".xls"]:
        df = pd.read_excel(path)
    else:
        df = pd.read_csv(path, encoding="utf-8")
    cols = {c.lower(): c for c in df.columns}
    qcol, icol = cols.get("query"), cols.get("expected_id")
    if not qcol or not icol:
        raise ValueError(
            f"Expected columns 'query' and 'expected_id'. Found: {list(df.columns)}"
        )
    renames = {qcol: "query", icol: "expected_id"}
    if "scope_key" in cols:
        renames[cols["scope_key"]] = "scope_key"
    return df.rename(columns=renames)

def _normalize_query_key(q: str) -> str:
    """
    Normalize query text so the same question with different whitespace/newlines
    maps to the same key.
    """
    q = str(q or "").strip()
    q = re.sub(r"\s+", " ", q)
    return q

def _scope_or_none(val) -> Optional[str]:
    if val is None or (isinstance(val, float) and val != val):
        return None
    s = str(val).strip()
    return s or None

# ---------- build gold sets ----------

def build_gold_sets(df: pd.DataFrame) -> Dict[str, Set[str]]:
    """
    Collapse identical logical queries into:
        normalized_query -> {expected chunk ids}
    """
    gold: Dict[str, Set[str]] = {}
    for _, row in df.iterrows():
        q_key = _normalize_query_key(row["query"])
        cid = str(row["expected_id"]).strip()
        if q_key and cid:
            gold.setdefault(q_key, set()).add(cid)
    return gold

# ---------- metrics ----------

def recall_at_k(gold: Set[str], pred_ids: List[str], k: int) -> float:
    if not gold:
        return 0.0
    top = set(pred_ids[:k])
    hits = len(gold.intersection(top))
    return hits / float(len(gold))

def mean_recall_at_k(
    gold: Dict[str, Set[str]],
    preds: Dict[str, List[str]],
    k: int,
) -> float:
    vals = [recall_at_k(g, preds.get(q, []), k) for q, g in gold.items()]
    if not vals:
        return 0.0
    return sum(vals) / len(vals)

def tier_distribution(responses: Iterable[RetrievalResponse]) -> Dict[str, float]:
    """Share of queries answered by each tier (including 'none')."""
    counts = Counter(r.tier_used for r in responses)
    total = sum(counts.values())
    if total == 0:
        return {}
    return {tier: n / total for tier, n in sorted(counts.items())}

def weak_rate(responses: Iterable[RetrievalResponse]) -> float:
    flags = [r.signals.is_weak for r in responses]
    if not flags:
        return 0.0
    return sum(flags) / len(flags)

# ---------- runner ----------

def run_queries(
    df: pd.DataFrame,
    retrieve_fn: Callable[..., RetrievalResponse],
    target_count: int,
) -> Dict[str, RetrievalResponse]:
    """One retrieval per distinct normalized query (first scope seen wins)."""
    out: Dict[str, RetrievalResponse] = {}
    for _, row in df.iterrows():
        q_key = _normalize_query_key(row["query"])
        if not q_key or q_key in out:
            continue
        scope = _scope_or_none(row.get("scope_key"))
        out[q_key] = retrieve_fn(q_key, scope, target_count)
    return out

# ---------- CLI ----------

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--queries", type=Path, default=config.EVAL_QUERIES_PATH,
                    help="CSV/XLSX with columns query, expected_id[, scope_key]")
    ap.add_argument("--k", type=int, nargs="+", default=[1, 3, 6])
    ap.add_argument("--target_count", type=int, default=config.DEFAULT_TARGET_COUNT)
    args = ap.parse_args()

    from ._singletons import retrieve

    df = _read_any(args.queries)
    gold = build_gold_sets(df)
    responses = run_queries(df, retrieve, args.target_count)
    preds = {q: [r.id for r in resp.results] for q, resp in responses.items()}

    for k in args.k:
        print(f"Recall@{k}: {mean_recall_at_k(gold, preds, k):.4f}")
    for tier, share in tier_distribution(responses.values()).items():
        print(f"tier={tier}: {share:.2%}")
    print(f"Weak rate: {weak_rate(responses.values()):.2%}")

if __name__ == "__main__":
    main()
