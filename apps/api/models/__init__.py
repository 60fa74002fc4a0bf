"""Models package."""

from .user import User
from .proposal import Proposal
from .proposal_link import ProposalLink
from .link_otp import LinkOtp
from .link_view import LinkView
from .slide_analytic import SlideAnalytic
