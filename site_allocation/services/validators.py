from site_allocation.schemas.site import Site
from site_allocation.services.exceptions import ValidationError


class BusinessRules:
    MAX_SITE_NAME_LENGTH = 200

    @staticmethod
    def validate_site(site: Site):
        name = (site.name or "").strip()
        if not name:
            raise ValidationError("Site name is required.")
        if len(name) > BusinessRules.MAX_SITE_NAME_LENGTH:
            raise ValidationError(
                f"Site name cannot exceed {BusinessRules.MAX_SITE_NAME_LENGTH} characters."
            )
        if not site.id or not site.id.strip():
            raise ValidationError("Site id is required.")
