from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote, urlparse


@dataclass(frozen=True)
class SelectorHints:
    title: Optional[str] = None
    content: Optional[str] = None
    article: Optional[str] = None


@dataclass(frozen=True)
class SourceDescriptor:
    name: str
    url: str
    selectors: Optional[SelectorHints] = None
    priority: int = 0
    update_frequency: Optional[str] = None


@dataclass(frozen=True)
class Category:
    name: str
    description: str
    keywords: Tuple[str, ...]
    sources: Tuple[SourceDescriptor, ...]


class SourceRegistry:
    """Read-only table of categories and their topic-specific sources."""

    def __init__(self, categories: Iterable[Category]) -> None:
        table: Dict[str, Category] = {}
        for category in categories:
            if category.name in table:
                raise ValueError(f"duplicate category '{category.name}'")
            table[category.name] = category
        self._categories = table

    def categories(self) -> List[Category]:
        return list(self._categories.values())

    def names(self) -> List[str]:
        return list(self._categories)

    def get(self, name: str) -> Optional[Category]:
        return self._categories.get(name)

    def sources_for(self, category_names: Sequence[str]) -> List[SourceDescriptor]:
        collected: List[SourceDescriptor] = []
        for name in category_names:
            category = self._categories.get(name)
            if category is None:
                continue
            collected.extend(sorted(category.sources, key=lambda source: source.priority, reverse=True))

        unique: List[SourceDescriptor] = []
        seen_urls: set[str] = set()
        for source in collected:
            if source.url in seen_urls:
                continue
            unique.append(source)
            seen_urls.add(source.url)

        unique.sort(key=lambda source: source.priority, reverse=True)
        return unique


_SEARCH_URL_PATTERNS: Dict[str, str] = {
    "techcrunch.com": "{base}/search/{query}",
    "nature.com": "{base}/search?q={query}",
    "science.org": "{base}/search?q={query}",
    "sciencedaily.com": "{base}/search/?keyword={query}",
    "theverge.com": "{base}/search?q={query}",
    "arstechnica.com": "{base}/search/?query={query}",
    "venturebeat.com": "{base}/search/?q={query}",
    "scientificamerican.com": "{base}/search/?q={query}",
    "newscientist.com": "{base}/search/?q={query}",
    "phys.org": "{base}/search/?search={query}",
    "carbonbrief.org": "{base}/search?q={query}",
    "e360.yale.edu": "{base}/search?q={query}",
}


def search_url_for(source: SourceDescriptor, query: str) -> Optional[str]:
    """Site-specific search page for ``query`` on ``source``, when the site has one."""

    domain = urlparse(source.url).netloc.lower()
    if domain.startswith("www."):
        domain = domain[4:]
    pattern = _SEARCH_URL_PATTERNS.get(domain)
    if pattern is None:
        return None
    return pattern.format(base=source.url.rstrip("/"), query=quote(query, safe=""))


def _source(name: str, url: str, priority: int, title: str, content: str, article: str) -> SourceDescriptor:
    return SourceDescriptor(
        name=name,
        url=url,
        priority=priority,
        selectors=SelectorHints(title=title, content=content, article=article),
    )


def build_default_registry() -> SourceRegistry:
    return SourceRegistry(
        [
            Category(
                name="technology",
                description="Technology, AI, software development, and tech industry news",
                keywords=(
                    "ai", "artificial intelligence", "machine learning", "ml", "deep learning",
                    "programming", "software", "development", "coding", "javascript", "python",
                    "react", "node", "api", "database", "cloud", "aws", "azure", "google cloud",
                    "tech", "technology", "startup", "silicon valley", "venture capital",
                    "blockchain", "cryptocurrency", "bitcoin", "ethereum", "web3", "nft",
                    "mobile", "app", "ios", "android", "framework", "library", "open source",
                    "github", "stackoverflow", "developer", "engineer", "computer science",
                ),
                sources=(
                    _source("TechCrunch", "https://techcrunch.com", 9,
                            "h1, .post-title", ".article-content, .post-content", "article, .post"),
                    _source("Hacker News", "https://news.ycombinator.com", 8,
                            ".storylink", ".comment", ".athing"),
                    _source("The Verge Tech", "https://www.theverge.com/tech", 8,
                            "h1, .c-page-title", ".c-entry-content", "article"),
                    _source("Ars Technica", "https://arstechnica.com", 7,
                            "h1.heading", ".post-content", "article"),
                    _source("MIT Technology Review", "https://www.technologyreview.com", 9,
                            "h1", ".content", "article"),
                ),
            ),
            Category(
                name="biology",
                description="Biology, life sciences, medical research, and health",
                keywords=(
                    "biology", "biotech", "biotechnology", "genetics", "dna", "rna", "gene",
                    "medical", "medicine", "health", "healthcare", "pharmaceutical", "drug",
                    "clinical trial", "research", "study", "protein", "cell", "molecular",
                    "neuroscience", "brain", "cancer", "disease", "treatment", "therapy",
                    "vaccine", "virus", "bacteria", "microbiome", "crispr", "genome",
                    "evolution", "ecology", "environment", "species", "organism",
                ),
                sources=(
                    _source("Nature", "https://www.nature.com", 10,
                            "h1.c-article-title", ".c-article-body", "article"),
                    _source("Science Magazine", "https://www.science.org", 10,
                            "h1.article__headline", ".article__body", "article"),
                    _source("PubMed Central", "https://www.ncbi.nlm.nih.gov/pmc", 9,
                            ".content-title", ".article", ".article"),
                    _source("Cell", "https://www.cell.com", 9,
                            "h1.article-header__title", ".article-text", "article"),
                    _source("BioWorld", "https://www.bioworld.com", 7,
                            "h1", ".article-body", "article"),
                ),
            ),
            Category(
                name="environment",
                description="Environmental science, climate change, and sustainability",
                keywords=(
                    "environment", "environmental", "climate", "climate change", "global warming",
                    "sustainability", "renewable energy", "solar", "wind", "green energy",
                    "carbon", "emissions", "pollution", "conservation", "biodiversity",
                    "ecosystem", "wildlife", "forest", "ocean", "water", "air quality",
                    "recycling", "waste", "plastic", "sustainable", "eco-friendly",
                    "paris agreement", "cop", "ipcc", "greenhouse gas", "fossil fuel",
                ),
                sources=(
                    _source("Environmental Science & Technology", "https://pubs.acs.org/journal/esthag", 9,
                            "h1.article_header-title", ".article_content", "article"),
                    _source("Yale Environment 360", "https://e360.yale.edu", 8,
                            "h1.article-title", ".article-body", "article"),
                    _source("Carbon Brief", "https://www.carbonbrief.org", 8,
                            "h1.post-title", ".post-content", "article"),
                    _source("Environmental Research Letters", "https://iopscience.iop.org/journal/1748-9326", 9,
                            "h1.wd-jnl-art-title", ".wd-jnl-art-abstract, .article-text", "article"),
                ),
            ),
            Category(
                name="startups",
                description="Startups, entrepreneurship, venture capital, and business",
                keywords=(
                    "startup", "startups", "entrepreneur", "entrepreneurship", "venture capital",
                    "vc", "funding", "investment", "investor", "seed", "series a", "series b",
                    "ipo", "acquisition", "merger", "business", "company", "unicorn",
                    "valuation", "revenue", "growth", "scale", "pivot", "product market fit",
                    "mvp", "minimum viable product", "accelerator", "incubator", "y combinator",
                    "techstars", "angel investor", "pitch", "demo day", "exit strategy",
                ),
                sources=(
                    _source("TechCrunch Startups", "https://techcrunch.com/category/startups", 9,
                            "h1.article__title", ".article-content", "article"),
                    _source("Crunchbase News", "https://news.crunchbase.com", 8,
                            "h1.post-title", ".post-content", "article"),
                    _source("VentureBeat", "https://venturebeat.com", 8,
                            "h1.article-title", ".article-content", "article"),
                    _source("Forbes Startups", "https://www.forbes.com/startups", 7,
                            "h1", ".article-body", "article"),
                ),
            ),
            Category(
                name="science",
                description="General science, physics, chemistry, and research",
                keywords=(
                    "science", "scientific", "research", "study", "physics", "chemistry",
                    "mathematics", "math", "quantum", "particle", "atom", "molecule",
                    "experiment", "theory", "hypothesis", "discovery", "breakthrough",
                    "nobel prize", "peer review", "journal", "publication", "academic",
                    "university", "laboratory", "scientist", "researcher", "professor",
                ),
                sources=(
                    _source("Science Daily", "https://www.sciencedaily.com", 8,
                            "h1#headline", "#story_text", "#story"),
                    _source("Scientific American", "https://www.scientificamerican.com", 8,
                            "h1.article-title", ".article-text", "article"),
                    _source("New Scientist", "https://www.newscientist.com", 7,
                            "h1.article-title", ".article-content", "article"),
                    _source("Phys.org", "https://phys.org", 7,
                            "h1.news-article__title", ".news-article__text", "article"),
                ),
            ),
        ]
    )
