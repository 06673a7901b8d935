"""
Profile Field Catalog

Fixed field order, selection vocabularies and display metadata for the
enhanced profile. Everything here is read-only at runtime.
"""
from enum import Enum


class ProfileField(str, Enum):
    FULL_NAME = "full_name"
    GENDER = "gender"
    PROFESSIONAL_ROLE = "professional_role"
    DATE_OF_BIRTH = "date_of_birth"
    COUNTRY = "country"
    ADDRESS = "address"
    PHONE = "phone"
    LINKEDIN = "linkedin"
    DOMAIN = "domain"
    YATRA_IMPACT = "yatra_impact"
    COMMUNITY_ASKS = "community_asks"
    COMMUNITY_GIVES = "community_gives"
    # optional, boolean-gated
    ADDITIONAL_EMAIL = "additional_email"
    INSTAGRAM = "instagram"


REQUIRED_FIELDS: tuple[ProfileField, ...] = (
    ProfileField.FULL_NAME,
    ProfileField.GENDER,
    ProfileField.PROFESSIONAL_ROLE,
    ProfileField.DATE_OF_BIRTH,
    ProfileField.COUNTRY,
    ProfileField.ADDRESS,
    ProfileField.PHONE,
    ProfileField.LINKEDIN,
    ProfileField.DOMAIN,
    ProfileField.YATRA_IMPACT,
    ProfileField.COMMUNITY_ASKS,
    ProfileField.COMMUNITY_GIVES,
)

LIST_FIELDS = frozenset({
    ProfileField.YATRA_IMPACT,
    ProfileField.COMMUNITY_ASKS,
    ProfileField.COMMUNITY_GIVES,
})

GATED_FIELDS: tuple[ProfileField, ...] = (
    ProfileField.ADDITIONAL_EMAIL,
    ProfileField.INSTAGRAM,
)


# ---------- Catalogs ----------
GENDERS = ["Male", "Female", "Others"]

PROFESSIONAL_ROLES = [
    "Entrepreneur",
    "Student",
    "Working Professional",
    "Startup Founder",
    "NGO Founder",
    "Researcher",
    "Freelancer",
    "Consultant",
]

DOMAINS = [
    "Agriculture",
    "Technology",
    "Healthcare",
    "Education",
    "Finance",
    "Manufacturing",
    "Energy & Sustainability",
    "Transportation & Logistics",
    "Retail & E-commerce",
    "Media & Entertainment",
    "Real Estate & Construction",
    "Telecommunications",
    "Automotive",
    "Aerospace & Defense",
    "Tourism & Hospitality",
    "Food & Beverage",
    "Legal & Compliance",
    "Human Resources & Workforce Development",
    "Social Impact & Nonprofit",
    "Cybersecurity",
]

YATRA_IMPACT = [
    "Started Enterprise Post-Yatra",
    "Found Clarity in Journey",
    "Received Funding / Grant",
]

COMMUNITY_ASKS = [
    "Mentorship & Guidance",
    "Funding & Investment Support",
    "Business Partnerships",
    "Job & Hiring Support",
    "Product Feedback & Testing",
    "Market & Customer Insights",
    "Legal & Compliance Help",
    "Technology Development & Support",
    "Publicity & Storytelling Help",
    "Emotional & Peer Support",
    "Other",
]

COMMUNITY_GIVES = [
    "Mentorship & Guidance",
    "Industry Insights & Best Practices",
    "Community Building & Networking",
    "Legal & Compliance Advice",
    "Technology & Digital Support",
    "Amplification of Ideas & Stories",
    "Market Access & Collaborations",
    "Skill Development Workshops",
    "Job & Internship Opportunities",
    "Investment & Funding Opportunities",
]

# (options, min picks, max picks) for the multi-select fields
MULTI_SELECT = {
    ProfileField.YATRA_IMPACT: (YATRA_IMPACT, 1, 3),
    ProfileField.COMMUNITY_ASKS: (COMMUNITY_ASKS, 1, len(COMMUNITY_ASKS)),
    ProfileField.COMMUNITY_GIVES: (COMMUNITY_GIVES, 1, len(COMMUNITY_GIVES)),
}

SINGLE_SELECT = {
    ProfileField.PROFESSIONAL_ROLE: PROFESSIONAL_ROLES,
    ProfileField.DOMAIN: DOMAINS,
}


DISPLAY_NAMES = {
    ProfileField.FULL_NAME: "Full Name",
    ProfileField.GENDER: "Gender",
    ProfileField.PROFESSIONAL_ROLE: "Professional Role",
    ProfileField.DATE_OF_BIRTH: "Date of Birth",
    ProfileField.COUNTRY: "Country",
    ProfileField.ADDRESS: "City/Town",
    ProfileField.PHONE: "Phone Number",
    ProfileField.LINKEDIN: "LinkedIn Profile",
    ProfileField.DOMAIN: "Industry Domain",
    ProfileField.YATRA_IMPACT: "Yatra Impact",
    ProfileField.COMMUNITY_ASKS: "Community Support Needs",
    ProfileField.COMMUNITY_GIVES: "Community Contributions",
    ProfileField.ADDITIONAL_EMAIL: "Additional Email",
    ProfileField.INSTAGRAM: "Instagram Profile",
}

# Ordered from most to least typical; error tiers 2 and 3 draw from these.
FIELD_EXAMPLES = {
    ProfileField.FULL_NAME: ["Priya Sharma", "Rahul Kumar Verma", "Anne-Marie D'Souza"],
    ProfileField.GENDER: ["1", "Female", "m"],
    ProfileField.PROFESSIONAL_ROLE: ["1", "4", "Student"],
    ProfileField.DATE_OF_BIRTH: ["19/07/1995", "1995-07-19", "19 July 1995"],
    ProfileField.COUNTRY: ["India", "United States", "Kenya"],
    ProfileField.ADDRESS: ["Pune", "Bhubaneswar", "Thane, Maharashtra"],
    ProfileField.PHONE: ["+91 9876543210", "9876543210", "+1 2025551234"],
    ProfileField.LINKEDIN: ["https://linkedin.com/in/yourname", "linkedin.com/in/yourname", "yourname"],
    ProfileField.DOMAIN: ["2", "5", "Healthcare"],
    ProfileField.YATRA_IMPACT: ["1", "1,2", "1,2,3"],
    ProfileField.COMMUNITY_ASKS: ["1", "1,3,5", "2 4"],
    ProfileField.COMMUNITY_GIVES: ["1", "1,3,5,7", "2 6"],
    ProfileField.ADDITIONAL_EMAIL: ["yes", "no"],
    ProfileField.INSTAGRAM: ["yes", "no"],
}


def options_list(options: list[str]) -> str:
    return "\n".join(f"{i}. {opt}" for i, opt in enumerate(options, 1))
