"""FastAPI application for the deal storefront."""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from pydantic import BaseModel

from ..errors import StorefrontError
from ..orchestrator.coordinator import StorefrontCoordinator
from ..services.seo import build_item_list, page_meta
from ..storage.models import UserProfileRecord


class OfferForm(BaseModel):
    """Offer form body."""

    url: str = ""
    title: str = ""
    description: str = ""
    category: str = "Geral"
    estimated_price: Optional[str] = None
    image_url: Optional[str] = None
    additional_images: List[str] = []
    video_url: Optional[str] = None


class OfferChanges(BaseModel):
    """Partial offer edit; unset fields are left alone."""

    url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    estimated_price: Optional[str] = None
    image_url: Optional[str] = None
    additional_images: Optional[List[str]] = None
    video_url: Optional[str] = None


class FeaturedBody(BaseModel):
    featured: bool = True


class CommentBody(BaseModel):
    text: str


class InterestBody(BaseModel):
    email: str


class EnrichBody(BaseModel):
    url: str
    current_title: str = ""


class SignInBody(BaseModel):
    """Identity token returned by the provider's sign-in widget."""

    credential: str


auth_scheme = HTTPBearer(auto_error=False)


def visitor_id(
    x_visitor_id: Optional[str] = Header(None, max_length=128),
) -> Optional[str]:
    """Anonymous visitor id kept by the client, if any."""
    return (x_visitor_id or "").strip() or None


def create_app(coordinator: StorefrontCoordinator) -> FastAPI:
    """Build the API around an already wired coordinator.

    Args:
        coordinator: Storefront coordinator owning every client

    Returns:
        FastAPI application
    """
    config = coordinator.config

    app = FastAPI(
        title="Deal Storefront API",
        description="Affiliate offers feed, curation and engagement",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    def optional_user(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    ) -> Optional[UserProfileRecord]:
        """Resolve the signed-in user from the Bearer identity token, if any."""
        if not credentials or credentials.scheme.lower() != "bearer":
            return None
        return coordinator.authenticate(credentials.credentials)

    # ------------------------------------------------------------------
    # Service
    # ------------------------------------------------------------------

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": config.site.title,
            "version": "1.0.0",
            "status": "running",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "degraded" if coordinator.banner else "healthy",
            "banner": coordinator.banner,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # ------------------------------------------------------------------
    # Feed
    # ------------------------------------------------------------------

    @app.get("/feed")
    async def get_feed(
        q: str = Query("", description="Search text"),
        visible: Optional[int] = Query(None, ge=1, description="Items already loaded"),
    ):
        """Composed feed: featured product and the current page window.

        Clients ask for more by passing ``next_visible`` back as ``visible``.
        """
        view = coordinator.feed(q, visible)
        next_visible = view.visible_count + coordinator.composer.page_size
        return {
            "items": view.items,
            "featured": view.featured,
            "total": view.total,
            "visible_count": view.visible_count,
            "has_more": view.has_more,
            "next_visible": next_visible if view.has_more else None,
            "query": view.query,
            "searching": view.searching,
            "ordering": view.ordering,
            "banner": coordinator.banner,
        }

    @app.get("/carousel")
    async def get_carousel():
        """Top products for the marquee."""
        carousel = coordinator.carousel()
        return {
            "top": carousel["top"],
            "keys": carousel["keys"],
            "scroll_speed": config.carousel.scroll_speed,
        }

    @app.get("/seo")
    async def get_seo():
        """Page metadata and ItemList structured data."""
        products = coordinator.feed().ordered
        return {
            "meta": page_meta(
                config.site.title, config.site.description, config.site.url, products
            ),
            "structured_data": build_item_list(
                products, config.site.url, currency=config.site.currency
            ),
        }

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    @app.get("/products/{product_id}")
    async def get_product(
        product_id: int,
        related_visible: Optional[int] = Query(None, ge=1),
        user: Optional[UserProfileRecord] = Depends(optional_user),
        visitor: Optional[str] = Depends(visitor_id),
    ):
        """Product page data. ``liked`` is for the caller."""
        liker_id = user.uid if user else visitor
        return coordinator.product_detail(product_id, related_visible, liker_id)

    @app.post("/products", status_code=201)
    async def post_offer(
        form: OfferForm, user: Optional[UserProfileRecord] = Depends(optional_user)
    ):
        """Publish an offer."""
        return coordinator.post_offer(user, form.model_dump())

    @app.patch("/products/{product_id}")
    async def edit_offer(
        product_id: int,
        changes: OfferChanges,
        user: Optional[UserProfileRecord] = Depends(optional_user),
    ):
        """Edit an offer (author or curator)."""
        return coordinator.edit_offer(user, product_id, changes.model_dump(exclude_unset=True))

    @app.delete("/products/{product_id}")
    async def delete_offer(
        product_id: int, user: Optional[UserProfileRecord] = Depends(optional_user)
    ):
        """Delete an offer (author or curator)."""
        coordinator.delete_offer(user, product_id)
        return {"message": "Oferta excluída.", "product_id": product_id}

    @app.post("/products/{product_id}/featured")
    async def set_featured(
        product_id: int,
        body: FeaturedBody,
        user: Optional[UserProfileRecord] = Depends(optional_user),
    ):
        """Feature or unfeature an offer (curator only)."""
        return coordinator.set_featured(user, product_id, body.featured)

    @app.post("/products/{product_id}/like")
    async def toggle_like(
        product_id: int,
        user: Optional[UserProfileRecord] = Depends(optional_user),
        visitor: Optional[str] = Depends(visitor_id),
    ):
        """Like or unlike. Anonymous clients keep the returned ``liker_id``."""
        return coordinator.toggle_like(user.uid if user else None, product_id, visitor)

    @app.post("/products/{product_id}/click")
    async def record_click(product_id: int):
        """Count a click-through and return the affiliate URL to open."""
        return {"url": coordinator.record_click(product_id)}

    @app.get("/products/{product_id}/comments")
    async def list_comments(product_id: int):
        return {"comments": coordinator.comments(product_id)}

    @app.post("/products/{product_id}/comments", status_code=201)
    async def add_comment(
        product_id: int,
        body: CommentBody,
        user: Optional[UserProfileRecord] = Depends(optional_user),
    ):
        return coordinator.add_comment(user, product_id, body.text)

    @app.post("/products/{product_id}/interest", status_code=201)
    async def register_interest(product_id: int, body: InterestBody):
        """Register email interest in an offer."""
        result = coordinator.register_interest(body.email, product_id)
        return {"message": "Interesse registrado!", "mailto": result["mailto"]}

    @app.get("/products/{product_id}/pitch")
    async def marketing_pitch(product_id: int):
        """Sales copy for an offer, generated once and cached."""
        return {"pitch": await coordinator.marketing_pitch(product_id)}

    @app.post("/enrich")
    async def enrich_url(body: EnrichBody):
        """Auto-fill suggestions for the offer form."""
        return {"suggestions": await coordinator.enrich_url(body.url, body.current_title)}

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    @app.post("/auth/google")
    async def sign_in(body: SignInBody, visitor: Optional[str] = Depends(visitor_id)):
        """Exchange a provider identity token for the local profile.

        Nothing is kept server-side per session: later calls send the token
        as ``Authorization: Bearer``.
        """
        profile = coordinator.sign_in(body.credential, visitor)
        return {"user": profile, "is_curator": coordinator.is_curator(profile)}

    @app.post("/auth/logout")
    async def logout(visitor: Optional[str] = Depends(visitor_id)):
        coordinator.logout(visitor)
        return {"message": "Sessão encerrada."}

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    @app.get("/notifications")
    async def list_notifications():
        center = coordinator.notifications
        return {
            "notifications": [item.to_dict() for item in center.items],
            "unread": center.unread_count,
        }

    @app.post("/notifications/read")
    async def mark_notifications_read():
        coordinator.notifications.mark_all_read()
        return {"unread": 0}

    @app.delete("/notifications")
    async def clear_notifications():
        coordinator.notifications.clear()
        return {"notifications": []}

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    @app.post("/visits", status_code=204)
    async def track_visit():
        coordinator.track_visit()

    @app.get("/stats")
    async def get_stats(user: Optional[UserProfileRecord] = Depends(optional_user)):
        """Curator dashboard.

        Returns:
            Visits, clicks, notifications sent, leads and click breakdown
        """
        try:
            return coordinator.dashboard(user)
        except StorefrontError:
            raise
        except Exception as e:
            logger.error(f"Error getting stats: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    logger.info("Deal Storefront API ready")
    return app
