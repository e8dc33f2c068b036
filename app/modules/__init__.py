"""Domain modules package."""

from app.modules.counselors import models as counselors_models  # noqa: F401
from app.modules.courses import models as courses_models  # noqa: F401
from app.modules.dead_letters import models as dead_letters_models  # noqa: F401
from app.modules.leads import models as leads_models  # noqa: F401
from app.modules.payments import models as payments_models  # noqa: F401
