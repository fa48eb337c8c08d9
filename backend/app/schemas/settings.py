from pydantic import BaseModel

class SettingsUpdate(BaseModel):
    first_day_of_week: int  # 0 = Sunday ... 6 = Saturday
