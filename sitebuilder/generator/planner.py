"""Rule-based page plans for sites whose workspace has no pages yet."""

from __future__ import annotations

from typing import List

from ..selector.types import Section
from ..sync.content import PageData, SiteConfig, SiteContent

PUBLISHED = "Published"


def _sections(*specs: tuple) -> List[Section]:
    return [
        Section(section_type=section_type, name=name, order=index)
        for index, (section_type, name) in enumerate(specs, start=1)
    ]


def _is_saas(site: SiteConfig) -> bool:
    return (site.business_type or "SaaS").lower() == "saas"


def plan_pages(site: SiteConfig, content: SiteContent) -> List[PageData]:
    """Return a default page tree derived from the site's content collections."""

    name = site.name or "Website"
    saas = _is_saas(site)
    services = content.services
    team = content.team
    tagline = (site.brand_description or "")[:60] or "Welcome"

    home = [("Hero", f"{name}: {tagline}")]
    if services:
        home.append(("Cards", "Our Tools" if saas else "Our Services"))
    home.append(("Feature", f"Why choose {name}"))
    home.append(("Content", f"How {name} works"))
    if content.testimonials:
        home.append(("Testimonial", "What our customers say"))
    home.append(("Logo Wall", "Trusted by leading companies"))
    home.append(("CTA", f"Get started with {name}"))

    pages = [PageData(name="Home", route="/", nav_order=1, status=PUBLISHED, sections=_sections(*home))]

    if services:
        noun = "features" if saas else "services"
        pages.append(
            PageData(
                name=noun.title(),
                route=f"/{noun}",
                nav_order=2,
                status=PUBLISHED,
                sections=_sections(
                    ("Hero", f"Explore our {noun}"),
                    ("Cards", f"All {len(services)} {'tools' if saas else 'services'}"),
                    ("Feature", "Key capabilities"),
                    ("Feature", "Built for your workflow"),
                    ("CTA", f"Start using {name}"),
                ),
            )
        )

    if any(service.pricing is not None for service in services):
        pages.append(
            PageData(
                name="Pricing",
                route="/pricing",
                nav_order=3,
                status=PUBLISHED,
                sections=_sections(
                    ("Hero", "Simple, transparent pricing"),
                    ("Pricing", "Choose your plan"),
                    ("Content", "Compare plan features"),
                    ("FAQ", "Frequently asked questions"),
                    ("CTA", "Ready to get started?"),
                ),
            )
        )

    if team:
        pages.append(
            PageData(
                name="About",
                route="/about",
                nav_order=4,
                status=PUBLISHED,
                sections=_sections(
                    ("Hero", f"About {name}"),
                    ("Content", "Our mission"),
                    ("Cards", f"Meet the team ({len(team)} members)"),
                    ("CTA", "Join our team"),
                ),
            )
        )

    pages.append(
        PageData(
            name="Contact",
            route="/contact",
            nav_order=5,
            status=PUBLISHED,
            sections=_sections(
                ("Hero", "Get in touch"),
                ("Content", "Contact information"),
                ("FAQ", "Frequently asked questions"),
            ),
        )
    )
    pages.append(
        PageData(
            name="Privacy Policy",
            route="/privacy",
            page_type="Utility",
            nav_order=100,
            status=PUBLISHED,
            sections=_sections(("Content", "Privacy Policy")),
        )
    )
    pages.append(
        PageData(
            name="Terms of Service",
            route="/terms",
            page_type="Utility",
            nav_order=101,
            status=PUBLISHED,
            sections=_sections(("Content", "Terms of Service")),
        )
    )
    return pages


def plan_page_sections(page: PageData, site: SiteConfig) -> List[Section]:
    """Default sections for a page that exists but has none of its own."""

    if page.route == "/" or "home" in (page.name or "").lower():
        return _sections(
            ("Hero", f"Welcome to {site.name or 'our site'}"),
            ("Cards", "What we offer"),
            ("Feature", "Why choose us"),
            ("CTA", "Get started today"),
        )
    title = page.name or "Page"
    return _sections(
        ("Hero", title),
        ("Content", f"About {title}"),
        ("CTA", "Learn more"),
    )
