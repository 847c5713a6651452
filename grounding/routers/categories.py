from typing import List

from fastapi import APIRouter, Depends

from grounding.rag.classifier import suggests_category_search
from grounding.schemas import CategoryPayload, CategorySourcePayload, ClassifyRequest, ClassifyResponse
from grounding.services.rag import RetrievalOrchestrator, get_orchestrator

router = APIRouter(prefix="/categories")


@router.get("", response_model=List[CategoryPayload])
def list_categories(orchestrator: RetrievalOrchestrator = Depends(get_orchestrator)) -> List[CategoryPayload]:
    return [
        CategoryPayload(
            name=category.name,
            description=category.description,
            keywords=list(category.keywords),
            sources=[
                CategorySourcePayload(
                    name=source.name,
                    url=source.url,
                    priority=source.priority,
                    update_frequency=source.update_frequency,
                )
                for source in category.sources
            ],
        )
        for category in orchestrator.registry.categories()
    ]


@router.post("/classify", response_model=ClassifyResponse)
def classify_query(
    payload: ClassifyRequest,
    orchestrator: RetrievalOrchestrator = Depends(get_orchestrator),
) -> ClassifyResponse:
    return ClassifyResponse(
        categories=orchestrator.classifier.classify(payload.query),
        scores=dict(orchestrator.classifier.scores(payload.query)),
        category_search_suggested=suggests_category_search(payload.query),
    )
