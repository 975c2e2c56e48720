"""
Prompt templates and deterministic input digests.

The digests render step outputs into stable text blocks so the same inputs
always produce the same prompt.
"""

from typing import Iterable, List, Optional, Sequence

from models.schemas import PageInsight, ReviewBundle, Store, TrendSnapshot


COMPETITOR_SYSTEM_PROMPT = """
You identify the top competitors for a user's query.
1. Decide whether the query asks about a mobile app (category "app") or a
   local business such as a restaurant or shop (category "local_business").
2. Name exactly 3 top competitors, relying on common knowledge.
3. For apps, add your best guess of each competitor's App Store and Google Play
   URLs (they are verified later). For local businesses, give names only.
4. If the query is unclear, return "Unknown 1", "Unknown 2", "Unknown 3".
Respond with a JSON object:
{"category": "app" | "local_business",
 "competitors": [{"name": str, "app_store_url": str | null, "google_play_url": str | null}]}
"""

REVIEW_SYSTEM_PROMPT = """
You write realistic sample app reviews. For EACH requested platform produce
exactly {count} distinct reviews. Every review has an integer "rating" from 1
to 5 and a "text" of 1-3 sentences. Vary tone and topic (features, bugs,
usability, performance, pricing).
Respond with a JSON object with the keys "app_store_reviews" and
"google_play_reviews", each a list of {{"rating": int, "text": str}}.
Use an empty list for any platform that was not requested.
"""

PAGE_ANALYSIS_SYSTEM_PROMPT = """
You are a market research analyst. You read scraped web content and report
only what the content supports.
"""

CHART_SYSTEM_PROMPT = """
You turn market research data into chart-ready JSON. Do not write code.
Return a JSON object with:
- "bar_chart_data": one object per competitor with "name", "review_count",
  "rating" (0-5) and "market_share" (0-100, null if unknown).
- "gap_matrix_data": one object per key feature with "feature",
  "unmet_need" ("High" | "Medium" | "Low") and "competitor_status", a map from
  every competitor name to "Yes", "No" or "Unknown".
- "suggested_bar_chart_metric": "review_count" or "rating".
"""

SUMMARY_SYSTEM_PROMPT = """
You are an expert market analysis synthesizer. Using only the data provided,
write a concise Market Summary Report with headed sections:
Overall Market Summary, Key Market Trends, Competitor Positioning,
Market Gaps, Strategic Opportunities.
"""


def competitor_prompt(query: str) -> str:
    return f"User query: {query}"


def review_prompt(name: str, stores: Sequence[Store], count: int) -> str:
    platforms = " and ".join(store.label for store in stores)
    return (
        f"Generate exactly {count} reviews for the '{name}' app for EACH of the "
        f"following platform(s): {platforms}."
    )


def page_analysis_prompt(url: str, title: Optional[str], topic: str, content: str) -> str:
    return f"""
Analyze the following text scraped from "{url}" (Title: "{title or 'N/A'}").
Focus on information relevant to market research for: {topic}.

Content:
---
{content}
---

Based only on the content above:
1. Summary: a concise summary (3-5 sentences) of the points relevant to the topic.
2. Insight: one specific, actionable insight, or "No specific insight found."
3. Relevance: exactly one of Highly relevant, Partially relevant, Not relevant,
   followed by a brief justification.

Format your response EXACTLY like this:
Summary: [summary]
Insight: [insight]
Relevance: [relevance and justification]
"""


# ─── Digests ─────────────────────────────────────────────────────────────────


def _bullets(items: Iterable[str], empty: str = "- none") -> str:
    lines = [f"- {item}" for item in items]
    return "\n".join(lines) if lines else empty


def reviews_digest(bundles: Sequence[ReviewBundle]) -> str:
    if not bundles:
        return "No review data available."
    blocks: List[str] = []
    for bundle in bundles:
        lines = [f"{bundle.competitor_name}:"]
        for store in (Store.APP_STORE, Store.GOOGLE_PLAY):
            reviews = bundle.reviews_for(store)
            if not reviews:
                continue
            avg = sum(r.rating for r in reviews) / len(reviews)
            lines.append(f"  {store.label} ({len(reviews)} reviews, avg {avg:.1f}):")
            lines.extend(f"    [{r.rating}/5] {r.text}" for r in reviews)
        blocks.append("\n".join(lines))
    return "\n".join(blocks)


def trends_digest(trends: TrendSnapshot) -> str:
    lines = [f"Keyword: {trends.keyword} (region {trends.country})"]
    lines.append("Top related queries:")
    lines.append(_bullets(trends.top))
    lines.append("Rising related queries:")
    lines.append(_bullets(trends.rising))
    if trends.is_empty:
        lines.append("No trend data could be retrieved.")
    return "\n".join(lines)


def insights_digest(insights: Sequence[PageInsight]) -> str:
    usable = [i for i in insights if i.success]
    if not usable:
        return "No webpage insights available."
    blocks = []
    for i in usable:
        blocks.append(
            f"Source: {i.url}" + (f" ({i.title})" if i.title else "") + "\n"
            f"  Summary: {i.summary}\n"
            f"  Insight: {i.insight}\n"
            f"  Relevance: {i.relevance}"
        )
    return "\n".join(blocks)


def market_data_prompt(
    query: str,
    bundles: Sequence[ReviewBundle],
    trends: TrendSnapshot,
    insights: Sequence[PageInsight],
) -> str:
    """Shared input block for the chart and summary steps."""
    return (
        f"User query: {query}\n\n"
        f"### 1. Competitor reviews\n{reviews_digest(bundles)}\n\n"
        f"### 2. Search trends\n{trends_digest(trends)}\n\n"
        f"### 3. Webpage insights\n{insights_digest(insights)}\n"
    )
