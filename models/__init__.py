from .user import User
from .subscription_plan import SubscriptionPlan
from .user_subscription import UserSubscription, SubscriptionStatusEnum
from .ad_snapshot import AdSnapshot
from .url_analysis import UrlAnalysis, AnalysisStatusEnum
