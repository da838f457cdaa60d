from app.models.associations import (
    event_tags, event_target_groups, group_admins, group_app_groups, news_tags, news_target_groups,
    poll_target_groups, user_groups,
)
from app.models.user import User
from app.models.group import Group
from app.models.app_group import AppGroup, Application, ApplicationClick
from app.models.taxonomy import EventCategory, NewsCategory, Tag
from app.models.news import News, NewsReaction, NewsRead
from app.models.event import Event
from app.models.poll import Poll, PollOption, PollVote
from app.models.comment import Comment, CommentSettings
from app.models.notification import Notification
from app.models.chat import ChatMessage
from app.models.gamification import Achievement, GamificationProfile, UserAchievement, XPTransaction
from app.models.site import Announcement, AppSetting, EmailOAuthConfig, Feedback, HeroMessage, Media
