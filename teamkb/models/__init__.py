# Importing every model module registers the relationship targets with the mapper.
from teamkb.models import article_models, auth_models, team_models  # noqa: F401
