from fastapi import Depends, Request

from facecompare.processing import ComparisonPipeline
from facecompare.utils.client_utils import Services, load_services
from facecompare.utils.logging_utils import get_logger

logger = get_logger(__name__)

def get_services(request: Request) -> Services:
    """
    Dependency function providing the external collaborators.
    Created on first use and kept on the application state.
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        logger.info("First request: creating external service clients...")
        services = load_services()
        request.app.state.services = services
    return services

def get_pipeline_factory(services: Services = Depends(get_services)):
    """Returns a callable building one ComparisonPipeline per request."""
    def factory(realign=None):
        return ComparisonPipeline(services.detector, services.text_generator, realign=realign)
    return factory
