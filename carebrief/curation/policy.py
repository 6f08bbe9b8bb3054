"""Curation policy: keyword sets, domain lists, trust weights and quotas.

Everything the pipeline decides on is carried by one immutable
``CurationPolicy`` built once at startup. Tests derive variants with
``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple


# Topic set: elderly / care vocabulary (JP + EN)
TOPIC_KEYWORDS: Tuple[str, ...] = (
    "高齢者", "介護", "老人", "在宅医療", "地域包括", "見守り", "転倒", "認知症", "介護保険", "介護DX", "シルバー",
    "geriatric", "elderly", "seniors", "older adults", "nursing home", "care home", "long-term care",
)

# Technology set: AI / digital health vocabulary (JP + EN)
TECH_KEYWORDS: Tuple[str, ...] = (
    "AI", "人工知能", "生成AI", "機械学習", "デジタルヘルス", "遠隔診療", "リモートモニタリング", "転倒検知", "センサー",
    "見守りシステム", "telemedicine", "digital health", "machine learning", "LLM", "gen AI", "remote monitoring",
    "fall detection",
)

# Strong allow: primary sources, peer review, major institutions
OVERSEAS_ALLOW: Tuple[str, ...] = (
    "who.int", "oecd.org", "nih.gov", "ninds.nih.gov", "nlm.nih.gov", "hhs.gov", "cdc.gov", "ema.europa.eu", "nhs.uk",
    "nature.com", "thelancet.com", "nejm.org", "bmj.com", "jamanetwork.com", "medrxiv.org", "arxiv.org",
    "stanford.edu", "harvard.edu", "ox.ac.uk", "cam.ac.uk", "imperial.ac.uk", "ucl.ac.uk", "mit.edu",
    "mayoclinic.org", "clevelandclinic.org", "massgeneral.org", "kuh.ac.kr", "singhealth.com.sg",
)

# Semi allow: official blogs of large health-IT / tech vendors
OVERSEAS_SEMIALLOW: Tuple[str, ...] = (
    "healthit.gov", "whoop.com", "philips.com", "gehealthcare.com", "siemens-healthineers.com", "nvidia.com",
    "microsoft.com", "googleblog.com", "openai.com",
)

# Reposts, press-release wires and affiliate-heavy hosts
AVOID_DOMAINS: Tuple[str, ...] = (
    "medium.com", "pinterest.com", "linkedin.com", "facebook.com", "x.com", "twitter.com",
    "businesswire.com", "prnewswire.com", "globenewswire.com", "newswire.com", "einnews.com",
    "apnews.com/press-release", "marketwatch.com/press-release", "benzinga.com/pressreleases",
)

TRUST_WEIGHTS: Mapping[str, int] = MappingProxyType({
    "who.int": 4, "oecd.org": 3, "nih.gov": 4, "hhs.gov": 3, "cdc.gov": 4, "ema.europa.eu": 4, "nhs.uk": 4,
    "nature.com": 5, "thelancet.com": 5, "nejm.org": 5, "bmj.com": 5, "jamanetwork.com": 5,
    "medrxiv.org": 3, "arxiv.org": 3,
    "stanford.edu": 4, "harvard.edu": 4, "ox.ac.uk": 4, "cam.ac.uk": 4, "imperial.ac.uk": 4, "ucl.ac.uk": 4,
    "mit.edu": 4,
    "mayoclinic.org": 4, "clevelandclinic.org": 4, "massgeneral.org": 4,
    "healthit.gov": 3, "nvidia.com": 2, "microsoft.com": 2, "googleblog.com": 2, "openai.com": 2,
})

MAX_TRUST_WEIGHT = 5

DOMESTIC_SUFFIXES: Tuple[str, ...] = (".jp", ".go.jp", ".lg.jp", ".co.jp", ".or.jp", ".ne.jp")

# English-language but domestic
DOMESTIC_EXCEPTIONS: Tuple[str, ...] = ("japantimes.co.jp",)


@dataclass(frozen=True)
class ScoreWeights:
    relevance: float = 3.1
    freshness: float = 0.0
    trust: float = 0.2


@dataclass(frozen=True)
class CurationPolicy:
    topic_keywords: Tuple[str, ...] = TOPIC_KEYWORDS
    tech_keywords: Tuple[str, ...] = TECH_KEYWORDS
    overseas_allow: Tuple[str, ...] = OVERSEAS_ALLOW
    overseas_semiallow: Tuple[str, ...] = OVERSEAS_SEMIALLOW
    avoid_domains: Tuple[str, ...] = AVOID_DOMAINS
    trust_weights: Mapping[str, int] = field(default_factory=lambda: TRUST_WEIGHTS)
    max_trust_weight: int = MAX_TRUST_WEIGHT
    domestic_suffixes: Tuple[str, ...] = DOMESTIC_SUFFIXES
    domestic_exceptions: Tuple[str, ...] = DOMESTIC_EXCEPTIONS
    window_days: int = 7
    freshness_window_hours: float = 168.0
    title_similarity_threshold: float = 0.85
    domestic_target: int = 5
    overseas_target: int = 3
    weights: ScoreWeights = field(default_factory=ScoreWeights)


DEFAULT_POLICY = CurationPolicy()
